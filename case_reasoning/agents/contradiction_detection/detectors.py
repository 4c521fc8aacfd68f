# case_reasoning/agents/contradiction_detection/detectors.py
"""
Rule-based contradiction detectors.

Each detector is a function of the case's facts and a PersonKeys lookup over the
alias table: it writes nothing, so running it twice gives the same candidates.
Pair de-duplication and persistence belong to the agent.
"""
from collections import OrderedDict
from typing import List, Dict, Optional, Tuple

from case_reasoning.config.constants import (
    NEGATION_PAIRS, WITNESS_OPPOSITION_PAIRS, EVIDENCE_PRESENCE_RULES,
    FORENSIC_TRACE_KEYWORDS, DENIAL_KEYWORDS, FORENSIC_DENIAL_ANALYSIS,
    EVIDENCE_FACT_TYPES, TIMELINE_FACT_TYPES, WITNESS_FACT_TYPES,
)
from case_reasoning.models.contradiction import Contradiction
from case_reasoning.models.enums import (
    ContradictionType, ContradictionSeverity, FactType, TimeCertainty
)
from case_reasoning.models.fact import AtomicFact, TimeReference
from case_reasoning.services.repository import PersonKeys
from case_reasoning.utils.temporal import overlap_minutes, sort_timestamp
from case_reasoning.utils.text_processing import alnum_key, affirms, contains_word


def _group(facts: List[AtomicFact], key_fn) -> "OrderedDict[str, List[AtomicFact]]":
    groups: "OrderedDict[str, List[AtomicFact]]" = OrderedDict()
    for fact in facts:
        groups.setdefault(key_fn(fact), []).append(fact)
    return groups


# ----------------------------------------------------------------------------
# Timeline
# ----------------------------------------------------------------------------

def _certainty_bonus(reference: TimeReference) -> float:
    if reference.certainty == TimeCertainty.EXACT:
        return 0.2
    if reference.certainty == TimeCertainty.APPROXIMATE:
        return 0.1
    return 0.0


def time_confidence(reference1: TimeReference, reference2: TimeReference) -> float:
    """0.5 base, +0.2 per exact side, +0.1 per approximate side, capped at 0.95."""
    return min(0.95, 0.5 + _certainty_bonus(reference1) + _certainty_bonus(reference2))


def _is_timeline_fact(fact: AtomicFact) -> bool:
    if fact.fact_type.value in TIMELINE_FACT_TYPES:
        return True
    return fact.time_reference is not None and bool(fact.location)


def _facts_by_person(facts: List[AtomicFact], keys: PersonKeys
                     ) -> "OrderedDict[str, Tuple[str, List[AtomicFact]]]":
    """
    Each fact is filed once, under the person it describes: its subject, or its
    speaker when the speaker is talking about themselves. Values are (display name, facts).
    """
    by_person: "OrderedDict[str, Tuple[str, List[AtomicFact]]]" = OrderedDict()
    for fact in facts:
        key = keys.subject(fact)
        if not key:
            continue
        by_person.setdefault(key, (keys.subject_name(fact), []))[1].append(fact)
    return by_person


def timeline_severity(minutes: float, major_minutes: float = 60.0,
                      significant_minutes: float = 30.0) -> ContradictionSeverity:
    if minutes > major_minutes:
        return ContradictionSeverity.MAJOR
    if minutes > significant_minutes:
        return ContradictionSeverity.SIGNIFICANT
    return ContradictionSeverity.MINOR


def _timeline_overlap(fact1: AtomicFact, fact2: AtomicFact) -> Optional[float]:
    if fact1.time_reference is None or fact2.time_reference is None:
        return None
    if not fact1.location or not fact2.location:
        return None
    if fact1.location.lower() == fact2.location.lower():
        return None
    interval1 = fact1.time_reference.interval()
    interval2 = fact2.time_reference.interval()
    if interval1 is None or interval2 is None:
        return None
    minutes = overlap_minutes(interval1, interval2)
    return minutes if minutes > 0 else None


def detect_timeline_contradictions(case_id: str, facts: List[AtomicFact],
                                   major_minutes: float = 60.0,
                                   significant_minutes: float = 30.0,
                                   keys: Optional[PersonKeys] = None) -> List[Contradiction]:
    """Same person placed at two different locations during overlapping intervals."""
    keys = keys or PersonKeys()
    found = []
    candidates = [f for f in facts if _is_timeline_fact(f)]

    for person, person_facts in _facts_by_person(candidates, keys).values():
        for i in range(len(person_facts)):
            for j in range(i + 1, len(person_facts)):
                fact1, fact2 = person_facts[i], person_facts[j]
                minutes = _timeline_overlap(fact1, fact2)
                if minutes is None:
                    continue
                found.append(Contradiction(
                    case_id=case_id,
                    fact1_id=fact1.id,
                    fact2_id=fact2.id,
                    fact1_summary=f"{person} at {fact1.location} ({fact1.time_text or 'unknown time'})",
                    fact2_summary=f"{person} at {fact2.location} ({fact2.time_text or 'unknown time'})",
                    contradiction_type=ContradictionType.TIMELINE_IMPOSSIBLE,
                    severity=timeline_severity(minutes, major_minutes, significant_minutes),
                    description=(f'{person} claims to be at "{fact1.location}" and "{fact2.location}" '
                                 f'during overlapping time periods'),
                    analysis=(f"Time overlap of approximately {round(minutes)} minutes detected. "
                              f"{person} cannot physically be at both locations simultaneously."),
                    implications=f"{person} cannot have been at both locations during the overlapping timeframe",
                    suggested_followup=(f"Re-interview {person} about their whereabouts. "
                                        f"Check for witnesses at both locations."),
                    involved_persons=[person],
                    confidence_score=time_confidence(fact1.time_reference, fact2.time_reference),
                ))
    return found


# ----------------------------------------------------------------------------
# Self-contradiction / story evolution
# ----------------------------------------------------------------------------

def _negation_conflict(text1: str, text2: str) -> bool:
    for positive, negative in NEGATION_PAIRS:
        if affirms(text1, positive) and contains_word(text2, negative):
            return True
        if contains_word(text1, negative) and affirms(text2, positive):
            return True
    return False


def compare_statements(earlier: AtomicFact, later: AtomicFact
                       ) -> Optional[Tuple[ContradictionType, ContradictionSeverity, str, float]]:
    """(type, severity, analysis, confidence) for two statements by one speaker, or None."""
    if _negation_conflict(earlier.predicate, later.predicate):
        return (ContradictionType.SELF_CONTRADICTION, ContradictionSeverity.MAJOR,
                "Direct contradiction detected: earlier statement affirms what later statement denies "
                "(or vice versa)", 0.85)
    if earlier.location and later.location and earlier.location != later.location:
        return (ContradictionType.STORY_EVOLUTION, ContradictionSeverity.SIGNIFICANT,
                f'Location discrepancy: earlier said "{earlier.location}", later said "{later.location}"', 0.75)
    if earlier.time_text and later.time_text and earlier.time_text != later.time_text:
        return (ContradictionType.STORY_EVOLUTION, ContradictionSeverity.SIGNIFICANT,
                f'Time discrepancy: earlier said "{earlier.time_text}", later said "{later.time_text}"', 0.7)
    return None


def detect_self_contradictions(case_id: str, facts: List[AtomicFact],
                               keys: Optional[PersonKeys] = None) -> List[Contradiction]:
    """Consecutive statements by one speaker on one topic, ordered by when they were recorded."""
    keys = keys or PersonKeys()
    found = []
    spoken = [f for f in facts if keys.speaker(f)]
    for speaker_facts in _group(spoken, keys.speaker).values():
        topics = _group(speaker_facts, lambda f: f"{keys.subject(f)}_{f.fact_type.value}")
        for topic_facts in topics.values():
            if len(topic_facts) < 2:
                continue
            topic = f"{topic_facts[0].subject.lower()}_{topic_facts[0].fact_type.value}"
            ordered = sorted(topic_facts, key=lambda f: sort_timestamp(f.source.date_recorded))
            for earlier, later in zip(ordered, ordered[1:]):
                conflict = compare_statements(earlier, later)
                if conflict is None:
                    continue
                contradiction_type, severity, analysis, confidence = conflict
                speaker = earlier.speaker
                found.append(Contradiction(
                    case_id=case_id,
                    fact1_id=earlier.id,
                    fact2_id=later.id,
                    fact1_summary=(f'{speaker} said: "{earlier.predicate}" '
                                   f'({earlier.source.date_recorded or "unknown date"})'),
                    fact2_summary=(f'{speaker} later said: "{later.predicate}" '
                                   f'({later.source.date_recorded or "unknown date"})'),
                    contradiction_type=contradiction_type,
                    severity=severity,
                    description=f"{speaker}'s statements about {topic} conflict",
                    analysis=analysis,
                    implications=(f"{speaker} has provided inconsistent information, which may indicate "
                                  f"deception or memory issues"),
                    suggested_followup=(f"Confront {speaker} with both statements and request explanation "
                                        f"for the discrepancy"),
                    involved_persons=[speaker],
                    confidence_score=confidence,
                ))
    return found


# ----------------------------------------------------------------------------
# Cross-witness
# ----------------------------------------------------------------------------

def event_key(fact: AtomicFact, keys: Optional[PersonKeys] = None) -> str:
    """Normalized subject plus rough time text. Subjects that resolve to one entity share a key."""
    subject = (keys or PersonKeys()).subject(fact)
    return f"{alnum_key(subject)}_{alnum_key(fact.time_text)}"


def _opposing_claims(text1: str, text2: str) -> bool:
    for positive, negative in WITNESS_OPPOSITION_PAIRS:
        if affirms(text1, positive) and contains_word(text2, negative):
            return True
        if contains_word(text1, negative) and affirms(text2, positive):
            return True
    return False


def _vehicles_overlap(vehicles1: List[str], vehicles2: List[str]) -> bool:
    for v1 in vehicles1:
        for v2 in vehicles2:
            a, b = v1.lower(), v2.lower()
            if a in b or b in a:
                return True
    return False


def compare_witness_statements(fact1: AtomicFact, fact2: AtomicFact
                               ) -> Optional[Tuple[ContradictionSeverity, str, float]]:
    if _opposing_claims(fact1.predicate, fact2.predicate):
        return ContradictionSeverity.MAJOR, "Witnesses directly contradict each other", 0.85
    if fact1.fact_type == FactType.PHYSICAL_DESCRIPTION and fact2.fact_type == FactType.PHYSICAL_DESCRIPTION:
        return ContradictionSeverity.SIGNIFICANT, "Witnesses provide different physical descriptions", 0.7
    if (fact1.fact_type == FactType.VEHICLE_SIGHTING and fact2.fact_type == FactType.VEHICLE_SIGHTING
            and fact1.mentioned_vehicles and fact2.mentioned_vehicles
            and not _vehicles_overlap(fact1.mentioned_vehicles, fact2.mentioned_vehicles)):
        return ContradictionSeverity.SIGNIFICANT, "Witnesses describe different vehicles", 0.75
    return None


def detect_witness_conflicts(case_id: str, facts: List[AtomicFact],
                             keys: Optional[PersonKeys] = None) -> List[Contradiction]:
    """Different speakers observing the same subject at the same (textual) time."""
    keys = keys or PersonKeys()
    observations = [f for f in facts if f.fact_type.value in WITNESS_FACT_TYPES and keys.speaker(f)]
    found = []
    for event_facts in _group(observations, lambda f: event_key(f, keys)).values():
        if len(event_facts) < 2:
            continue
        if len({keys.speaker(f) for f in event_facts}) < 2:
            continue
        event = f"{event_facts[0].subject.lower()} ({event_facts[0].time_text or 'unknown time'})"
        for i in range(len(event_facts)):
            for j in range(i + 1, len(event_facts)):
                fact1, fact2 = event_facts[i], event_facts[j]
                if keys.speaker(fact1) == keys.speaker(fact2):
                    continue
                conflict = compare_witness_statements(fact1, fact2)
                if conflict is None:
                    continue
                severity, analysis, confidence = conflict
                found.append(Contradiction(
                    case_id=case_id,
                    fact1_id=fact1.id,
                    fact2_id=fact2.id,
                    fact1_summary=f'{fact1.speaker}: "{fact1.predicate}"',
                    fact2_summary=f'{fact2.speaker}: "{fact2.predicate}"',
                    contradiction_type=ContradictionType.WITNESS_CONFLICT,
                    severity=severity,
                    description=f"Witnesses disagree about {event}",
                    analysis=analysis,
                    implications="At least one witness is mistaken or being deceptive",
                    suggested_followup="Re-interview both witnesses separately about this specific detail",
                    involved_persons=[fact1.speaker, fact2.speaker],
                    confidence_score=confidence,
                ))
    return found


# ----------------------------------------------------------------------------
# Evidence vs testimony
# ----------------------------------------------------------------------------

def evidence_conflict(evidence_text: str, testimony_text: str) -> Optional[str]:
    """Analysis text when physical evidence contradicts a statement, else None."""
    for evidence_word, testimony_word, analysis in EVIDENCE_PRESENCE_RULES:
        if contains_word(evidence_text, evidence_word) and contains_word(testimony_text, testimony_word):
            return analysis
    if (any(contains_word(evidence_text, k) for k in FORENSIC_TRACE_KEYWORDS)
            and any(contains_word(testimony_text, k) for k in DENIAL_KEYWORDS)):
        return FORENSIC_DENIAL_ANALYSIS
    return None


def detect_evidence_contradictions(case_id: str, facts: List[AtomicFact],
                                   confidence: float = 0.9) -> List[Contradiction]:
    evidence_facts = [f for f in facts if f.fact_type.value in EVIDENCE_FACT_TYPES]
    testimony_facts = [f for f in facts if f.fact_type.value not in EVIDENCE_FACT_TYPES]

    found = []
    for evidence in evidence_facts:
        for testimony in testimony_facts:
            analysis = evidence_conflict(evidence.predicate, testimony.predicate)
            if analysis is None:
                continue
            speaker = testimony.speaker
            found.append(Contradiction(
                case_id=case_id,
                fact1_id=evidence.id,
                fact2_id=testimony.id,
                fact1_summary=f"Physical evidence: {evidence.predicate}",
                fact2_summary=f"{speaker} claims: {testimony.predicate}",
                contradiction_type=ContradictionType.EVIDENCE_CONTRADICTION,
                severity=ContradictionSeverity.CRITICAL,
                description="Physical evidence contradicts witness testimony",
                analysis=analysis,
                implications=(f"{speaker}'s statement is contradicted by physical evidence, "
                              f"suggesting possible deception"),
                suggested_followup="Confront witness with physical evidence and observe reaction",
                involved_persons=[speaker],
                confidence_score=confidence,
            ))
    return found


def deduplicate(contradictions: List[Contradiction]) -> List[Contradiction]:
    """
    One contradiction per unordered fact pair. The most severe wins; among equals
    the first found is kept, so rule-based results beat later oracle duplicates.
    """
    unique: Dict[Tuple[str, str], Contradiction] = OrderedDict()
    for contradiction in contradictions:
        kept = unique.get(contradiction.pair_key)
        if kept is None or contradiction.severity.rank > kept.severity.rank:
            unique[contradiction.pair_key] = contradiction
    return list(unique.values())
