# case_reasoning/agents/contradiction_detection/prompts.py
from typing import List

from case_reasoning.models.fact import AtomicFact

_ORACLE_TYPES = ("timeline_impossible, self_contradiction, statement_conflict, witness_conflict, "
                 "evidence_contradiction, story_evolution, detail_inconsistency")


def format_fact_line(fact: AtomicFact) -> str:
    return f'[{fact.id}] {fact.speaker}: "{fact.predicate}" ({fact.fact_type.value}, {fact.time_text or "no time"})'


def build_contradiction_prompt(facts: List[AtomicFact]) -> str:
    facts_text = "\n".join(format_fact_line(f) for f in facts)
    return f"""You are an expert cold case analyst looking for contradictions in witness statements and evidence.

Analyze these facts from a cold case investigation and identify any contradictions:

{facts_text}

For each contradiction found, provide:
1. The two fact IDs that conflict
2. The type of contradiction ({_ORACLE_TYPES})
3. Severity (minor, significant, major, critical)
4. Brief description
5. Analysis of implications
6. Confidence (0-1)

Respond in JSON format:
{{
  "contradictions": [
    {{
      "fact1Id": string,
      "fact2Id": string,
      "type": string,
      "severity": string,
      "description": string,
      "analysis": string,
      "implications": string,
      "confidence": number
    }}
  ]
}}

Only include genuine contradictions, not minor variations in wording. Focus on substantive conflicts."""
