# case_reasoning/agents/suspicion_scoring/prompts.py
from typing import List

from case_reasoning.models.person import PersonClaim, GuiltyKnowledgeIndicator
from case_reasoning.models.scoring import SuspicionScore


def _fmt(value: float) -> str:
    return f"{value:g}"


def build_refinement_prompt(score: SuspicionScore, claims: List[PersonClaim],
                            guilty_knowledge: List[GuiltyKnowledgeIndicator],
                            max_claims: int = 10) -> str:
    factor_lines = "\n".join(
        f"- {f.factor} (weight: {_fmt(f.weight)}): {f.evidence[0] if f.evidence else 'N/A'}"
        for f in score.factors
    )
    claim_lines = "\n".join(
        f'- {c.topic}: "{c.claim_text}" {"[SUSPICIOUS]" if c.is_suspicious else ""}'.rstrip()
        for c in claims[:max_claims]
    )
    knowledge_lines = "\n".join(
        f"- [{g.severity.value.upper()}] {g.knowledge_description}" for g in guilty_knowledge
    )
    return f"""You are an expert cold case analyst reviewing a suspect profile.

SUSPECT: {score.person_name}
ROLE: {score.role}

CURRENT SCORES:
- Opportunity: {_fmt(score.opportunity_score)}/25
- Means: {_fmt(score.means_score)}/25
- Motive: {_fmt(score.motive_score)}/25
- Behavior: {_fmt(score.behavior_score)}/25
- Evidence: {_fmt(score.evidence_score)}
- TOTAL: {_fmt(score.total_score)}

KEY FACTORS IDENTIFIED:
{factor_lines}

CLAIMS MADE BY THIS PERSON ({len(claims)} total):
{claim_lines}

GUILTY KNOWLEDGE INDICATORS ({len(guilty_knowledge)} total):
{knowledge_lines}

Based on this information:
1. Are there patterns I might have missed?
2. Should any scores be adjusted?
3. What are the most critical investigative next steps?
4. What is your overall assessment of this person's likelihood of involvement?

Respond in JSON format:
{{
  "adjustedScores": {{
    "opportunity": number (0-25),
    "means": number (0-25),
    "motive": number (0-25),
    "behavior": number (0-25)
  }},
  "additionalFactors": [
    {{ "factor": string, "weight": number, "category": string, "evidence": [string] }}
  ],
  "missedPatterns": [string],
  "criticalNextSteps": [string],
  "overallAssessment": string,
  "confidenceInScoring": number (0-1)
}}"""
