# case_reasoning/agents/suspicion_scoring/components.py
"""
Deterministic scoring rules.

Every function here is pure over a PersonCaseData bundle (and the optional
ScoringContext), so a score can always be recomputed from the stored records.
Component results are returned raw; clamping happens in `clamp_component`.
"""
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from case_reasoning.config.constants import (
    CLOSE_RELATIONSHIP_KEYWORDS, ACQUAINTANCE_KEYWORDS, PHYSICAL_CRIME_KEYWORDS,
    PHYSICAL_CAPABILITY_KEYWORDS, WEAPON_KEYWORDS, FINANCIAL_KEYWORDS, CONFLICT_KEYWORDS,
    CONFLICT_FACT_TYPES, VIOLENCE_KEYWORDS, WITNESS_KNOWLEDGE_KEYWORDS,
    CONNECTING_EVIDENCE_KEYWORDS, IDENTIFICATION_KEYWORDS, EVIDENCE_FACT_TYPES,
    COMPONENT_MAX, TOTAL_MAX, CRITICAL_FACTOR_WEIGHT, KEY_FINDING_MIN_WEIGHT, MAX_KEY_FINDINGS,
    DNA_MATCH_WEIGHT, DNA_EXCLUSION_WEIGHT, CONNECTING_EVIDENCE_CAP, WITNESS_IDENTIFICATION_CAP,
    DATA_QUALITY_TIERS,
)
from case_reasoning.models.enums import (
    FactType, RelationshipStrength, AlibiStatus, KnowledgeSeverity, FactorCategory,
    PriorityLevel, DataQuality,
)
from case_reasoning.models.fact import AtomicFact
from case_reasoning.models.person import (
    PersonProfile, PersonClaim, PersonAlibi, GuiltyKnowledgeIndicator, ScoringContext
)
from case_reasoning.models.scoring import ComponentScore, SuspicionFactor
from case_reasoning.utils.text_processing import contains_any


@dataclass
class PersonCaseData:
    """Everything the scorer reads about one person in one case."""
    profile: PersonProfile
    claims: List[PersonClaim] = field(default_factory=list)
    alibis: List[PersonAlibi] = field(default_factory=list)
    facts: List[AtomicFact] = field(default_factory=list)
    contradicted_facts: List[AtomicFact] = field(default_factory=list)
    guilty_knowledge: List[GuiltyKnowledgeIndicator] = field(default_factory=list)

    @property
    def data_points(self) -> int:
        return len(self.claims) + len(self.alibis) + len(self.facts) + len(self.guilty_knowledge)


def quote(fact: AtomicFact) -> str:
    return fact.source.original_quote or fact.predicate


def _quotes(facts: List[AtomicFact]) -> List[str]:
    return [quote(f) for f in facts]


def clamp_component(value: float) -> float:
    return max(0.0, min(float(COMPONENT_MAX), value))


def clamp_total(value: float) -> float:
    return max(0.0, min(float(TOTAL_MAX), value))


# ----------------------------------------------------------------------------
# Components
# ----------------------------------------------------------------------------

def opportunity_score(data: PersonCaseData, context: Optional[ScoringContext] = None) -> ComponentScore:
    result = ComponentScore()
    profile = data.profile
    relationship = (profile.relationship_to_victim or "").lower()

    if (profile.relationship_strength == RelationshipStrength.CLOSE
            or contains_any(relationship, CLOSE_RELATIONSHIP_KEYWORDS)):
        result.add(SuspicionFactor("Close relationship to victim", 8, FactorCategory.OPPORTUNITY,
                                   [profile.relationship_to_victim or "Close relationship indicated"]))
    elif (profile.relationship_strength == RelationshipStrength.ACQUAINTANCE
            or contains_any(relationship, ACQUAINTANCE_KEYWORDS)):
        result.add(SuspicionFactor("Known to victim", 5, FactorCategory.OPPORTUNITY,
                                   [profile.relationship_to_victim or "Acquaintance relationship"]))
    elif relationship:
        result.add(SuspicionFactor("Some connection to victim", 2, FactorCategory.OPPORTUNITY,
                                   [profile.relationship_to_victim]))

    crime_location = (context.crime_location if context else "").lower()
    if crime_location:
        present = [f for f in data.facts
                   if f.fact_type == FactType.LOCATION_CLAIM and crime_location in (f.location or "").lower()]
        if present:
            result.add(SuspicionFactor("Confirmed presence at crime location", 7, FactorCategory.OPPORTUNITY,
                                       _quotes(present)))

    impossible = [a for a in data.alibis if a.verification_status == AlibiStatus.IMPOSSIBLE]
    disputed = [a for a in data.alibis if a.verification_status == AlibiStatus.DISPUTED]
    unverified = [a for a in data.alibis if a.verification_status == AlibiStatus.UNVERIFIED]
    if impossible:
        result.add(SuspicionFactor("Alibi proven impossible", 5, FactorCategory.OPPORTUNITY,
                                   [f"Claimed {a.location} but disproven" for a in impossible]))
    elif disputed:
        result.add(SuspicionFactor("Alibi disputed", 3, FactorCategory.OPPORTUNITY,
                                   [a.conflict_description or "Alibi inconsistencies" for a in disputed]))
    elif unverified and len(unverified) == len(data.alibis):
        result.add(SuspicionFactor("No verified alibi", 2, FactorCategory.OPPORTUNITY,
                                   ["All alibis remain unverified"]))

    conflicting = [a for a in data.alibis if a.conflicting_alibi_ids]
    if conflicting:
        result.add(SuspicionFactor("Self-conflicting alibis", 3, FactorCategory.OPPORTUNITY,
                                   [a.conflict_description or "Timeline conflict detected" for a in conflicting]))
    return result


def means_score(data: PersonCaseData, context: Optional[ScoringContext] = None) -> ComponentScore:
    result = ComponentScore()

    crime_type = (context.crime_type if context else "").lower()
    if contains_any(crime_type, PHYSICAL_CRIME_KEYWORDS):
        capable = [f for f in data.facts if contains_any(f.predicate, PHYSICAL_CAPABILITY_KEYWORDS)]
        if capable:
            result.add(SuspicionFactor("Physical capability noted", 5, FactorCategory.MEANS, _quotes(capable)))

    weapons = [f for f in data.facts
               if f.fact_type == FactType.POSSESSION
               and (contains_any(f.predicate, WEAPON_KEYWORDS)
                    or any("weapon" in e.lower() for e in f.mentioned_evidence))]
    if weapons:
        result.add(SuspicionFactor("Access to potential weapon", 8, FactorCategory.MEANS, _quotes(weapons)))

    if data.profile.occupation:
        knowledge = [f for f in data.facts if f.fact_type == FactType.KNOWLEDGE_CLAIM and f.is_suspicious]
        if knowledge:
            result.add(SuspicionFactor("Relevant technical knowledge", 4, FactorCategory.MEANS, _quotes(knowledge)))
    return result


def motive_score(data: PersonCaseData, context: Optional[ScoringContext] = None) -> ComponentScore:
    result = ComponentScore()

    financial = [f for f in data.facts if contains_any(f.predicate, FINANCIAL_KEYWORDS)]
    if financial:
        suspicious = [f for f in financial if f.is_suspicious]
        if suspicious:
            result.add(SuspicionFactor("Suspicious financial motive", 10, FactorCategory.MOTIVE, _quotes(suspicious)))
        else:
            result.add(SuspicionFactor("Potential financial benefit", 5, FactorCategory.MOTIVE, _quotes(financial)))

    conflicts = [f for f in data.facts
                 if f.fact_type.value in CONFLICT_FACT_TYPES or contains_any(f.predicate, CONFLICT_KEYWORDS)]
    if conflicts:
        weight = 10 if any(contains_any(f.predicate, VIOLENCE_KEYWORDS) for f in conflicts) else 6
        result.add(SuspicionFactor("History of conflict with victim", weight, FactorCategory.MOTIVE,
                                   _quotes(conflicts)))

    knowledge = [f for f in data.facts
                 if contains_any(f.predicate, WITNESS_KNOWLEDGE_KEYWORDS) and f.is_suspicious]
    if knowledge:
        result.add(SuspicionFactor("Potential witness elimination motive", 5, FactorCategory.MOTIVE,
                                   _quotes(knowledge)))
    return result


def behavior_score(data: PersonCaseData) -> ComponentScore:
    result = ComponentScore()

    contradicted = data.contradicted_facts
    if len(contradicted) > 5:
        result.add(SuspicionFactor("Multiple statement contradictions", 10, FactorCategory.BEHAVIOR,
                                   _quotes(contradicted[:5])))
    elif len(contradicted) > 2:
        result.add(SuspicionFactor("Several statement contradictions", 7, FactorCategory.BEHAVIOR,
                                   _quotes(contradicted)))
    elif contradicted:
        result.add(SuspicionFactor("Statement contradictions detected", 4, FactorCategory.BEHAVIOR,
                                   _quotes(contradicted)))

    evolved = [c for c in data.claims if c.has_evolved]
    evolution_notes = [c.evolution_notes or "Statement evolved" for c in evolved]
    if len(evolved) > 3:
        result.add(SuspicionFactor("Story changed significantly over time", 5, FactorCategory.BEHAVIOR,
                                   evolution_notes))
    elif evolved:
        result.add(SuspicionFactor("Some story changes noted", 2, FactorCategory.BEHAVIOR, evolution_notes))

    critical = [g for g in data.guilty_knowledge if g.severity == KnowledgeSeverity.CRITICAL]
    high = [g for g in data.guilty_knowledge if g.severity == KnowledgeSeverity.HIGH]
    if critical:
        result.add(SuspicionFactor("CRITICAL: Demonstrated guilty knowledge", 10, FactorCategory.BEHAVIOR,
                                   [g.knowledge_description for g in critical]))
    elif high:
        result.add(SuspicionFactor("Suspicious knowledge of unpublicized details", 7, FactorCategory.BEHAVIOR,
                                   [g.knowledge_description for g in high]))
    elif data.guilty_knowledge:
        result.add(SuspicionFactor("Possible guilty knowledge indicators", 3, FactorCategory.BEHAVIOR,
                                   [g.knowledge_description for g in data.guilty_knowledge]))
    return result


def evidence_score(data: PersonCaseData) -> ComponentScore:
    """Evidence is a modifier, not a component: it is never clamped on its own and can go negative."""
    result = ComponentScore()
    profile = data.profile

    if profile.dna_matched:
        result.add(SuspicionFactor("DNA MATCH at crime scene", DNA_MATCH_WEIGHT, FactorCategory.EVIDENCE,
                                   ["DNA profile matched crime scene evidence"]))
    elif profile.dna_excluded:
        result.add(SuspicionFactor("DNA excluded (does not match)", DNA_EXCLUSION_WEIGHT, FactorCategory.EVIDENCE,
                                   ["DNA profile does not match crime scene evidence"]))
    elif not profile.dna_submitted:
        result.add(SuspicionFactor("DNA not submitted", 0, FactorCategory.EVIDENCE,
                                   ["No DNA sample collected from this person"]))

    connecting = [f for f in data.facts
                  if f.fact_type.value in EVIDENCE_FACT_TYPES
                  and (f.is_suspicious or contains_any(f.predicate, CONNECTING_EVIDENCE_KEYWORDS))]
    if connecting:
        result.add(SuspicionFactor("Physical evidence connections",
                                   min(CONNECTING_EVIDENCE_CAP, 5 * len(connecting)),
                                   FactorCategory.EVIDENCE, _quotes(connecting)))

    identified = [f for f in data.facts
                  if f.fact_type == FactType.OBSERVATION and contains_any(f.predicate, IDENTIFICATION_KEYWORDS)]
    if identified:
        result.add(SuspicionFactor("Witness identification",
                                   min(WITNESS_IDENTIFICATION_CAP, 5 * len(identified)),
                                   FactorCategory.EVIDENCE, _quotes(identified)))
    return result


# ----------------------------------------------------------------------------
# Derived fields
# ----------------------------------------------------------------------------

def has_dna_match(factors: List[SuspicionFactor]) -> bool:
    return any(f.category == FactorCategory.EVIDENCE and f.weight == DNA_MATCH_WEIGHT for f in factors)


def has_dna_exclusion(factors: List[SuspicionFactor]) -> bool:
    return any(f.category == FactorCategory.EVIDENCE and f.weight == DNA_EXCLUSION_WEIGHT for f in factors)


def critical_flags(factors: List[SuspicionFactor]) -> List[str]:
    return [f.factor for f in factors if f.weight >= CRITICAL_FACTOR_WEIGHT]


def priority_level(total: float, flag_count: int, dna_match: bool) -> PriorityLevel:
    if dna_match or total >= 70 or flag_count >= 3:
        return PriorityLevel.CRITICAL
    if total >= 50 or flag_count >= 2:
        return PriorityLevel.HIGH
    if total >= 30:
        return PriorityLevel.MEDIUM
    return PriorityLevel.LOW


def data_quality(data_points: int) -> Tuple[DataQuality, float]:
    """(tier, base confidence) for a data-point count."""
    for tier, minimum, base_confidence in DATA_QUALITY_TIERS:
        if data_points >= minimum:
            return DataQuality(tier), base_confidence
    tier, _, base_confidence = DATA_QUALITY_TIERS[-1]
    return DataQuality(tier), base_confidence


def confidence(base_confidence: float, factor_count: int, fact_count: int) -> float:
    return min(0.99, base_confidence + min(0.1, (factor_count + fact_count) / 100))


def recommendation(total: float, factors: List[SuspicionFactor]) -> str:
    if has_dna_match(factors):
        return "PRIORITY: DNA match at crime scene. Conduct formal interview and prepare for arrest."
    if has_dna_exclusion(factors):
        return "DNA excluded. Deprioritize unless other compelling evidence emerges."
    if total >= 70:
        return ("HIGH PRIORITY: Multiple strong indicators. Conduct comprehensive re-interview, "
                "verify all alibis, collect DNA sample.")
    if total >= 50:
        return ("MEDIUM-HIGH: Significant suspicion factors. Deeper investigation warranted. "
                "Verify alibis, examine financial records, re-interview.")
    if total >= 30:
        return "MEDIUM: Some indicators present. Standard follow-up recommended. Verify key claims and alibi."
    if total >= 15:
        return "LOW-MEDIUM: Minor indicators. Maintain as person of interest. No immediate action required."
    return "LOW: No significant indicators at this time. Keep on file for potential re-evaluation."


def key_findings(factors: List[SuspicionFactor], data: PersonCaseData) -> List[str]:
    findings = []
    top = sorted(factors, key=lambda f: f.weight, reverse=True)[:5]
    for factor in top:
        if factor.weight >= KEY_FINDING_MIN_WEIGHT:
            findings.append(f"{factor.factor}: {factor.evidence[0] if factor.evidence else 'Multiple indicators'}")
    for indicator in data.guilty_knowledge:
        if indicator.severity in (KnowledgeSeverity.CRITICAL, KnowledgeSeverity.HIGH):
            findings.append(f"Knew: {indicator.knowledge_description}")
    if data.contradicted_facts:
        findings.append(f"{len(data.contradicted_facts)} statement contradictions detected")
    return findings[:MAX_KEY_FINDINGS]
