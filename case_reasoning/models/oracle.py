# case_reasoning/models/oracle.py
"""
Tagged, validated forms of oracle replies.

Every parser either returns a fully checked value or raises OracleResponseError;
callers treat that exactly like an unreachable oracle.
"""
import re
from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any, Set

from case_reasoning.core.exceptions import OracleResponseError
from case_reasoning.models.enums import (
    ContradictionType, ContradictionSeverity, FactorCategory
)
from case_reasoning.models.scoring import SuspicionFactor
from case_reasoning.utils.text_processing import extract_json_object

_NONE_ANSWERS = {"0", "none", "no match", "null"}
_COMPONENTS = ("opportunity", "means", "motive", "behavior")


@dataclass
class OracleChoice:
    """Answer to a numbered candidate list: a zero-based index, or None for "none of them"."""
    index: Optional[int]
    raw: str = ""

    @property
    def is_none(self) -> bool:
        return self.index is None


def parse_oracle_choice(text: Optional[str], candidate_count: int) -> OracleChoice:
    if text is None:
        raise OracleResponseError("Empty oracle reply", expected_format="integer index")
    answer = text.strip().strip(".").lower()
    if answer in _NONE_ANSWERS:
        return OracleChoice(index=None, raw=text)
    match = re.match(r"^\s*(\d+)\b", answer)
    if not match:
        raise OracleResponseError(
            f"Oracle reply is not an index: {text[:80]!r}", expected_format="integer index")
    number = int(match.group(1))
    if number == 0:
        return OracleChoice(index=None, raw=text)
    if number > candidate_count:
        raise OracleResponseError(
            f"Oracle picked {number} but only {candidate_count} candidates were offered",
            expected_format=f"1..{candidate_count} or 0")
    return OracleChoice(index=number - 1, raw=text)


@dataclass
class OracleContradiction:
    fact1_id: str
    fact2_id: str
    contradiction_type: ContradictionType
    severity: ContradictionSeverity
    description: str = ""
    analysis: str = ""
    implications: str = ""
    confidence: float = 0.5


def _clamp_unit(value: Any, default: float = 0.5) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    return max(0.0, min(1.0, number))


def _string_list(value: Any) -> List[str]:
    """A list field that may arrive as a list, a lone string, or nothing."""
    if isinstance(value, list):
        return [str(item) for item in value if item]
    if isinstance(value, str) and value.strip():
        return [value.strip()]
    return []


def parse_oracle_contradictions(text: Optional[str], known_fact_ids: Set[str]) -> List[OracleContradiction]:
    """
    Parse {"contradictions": [...]} and keep only entries whose two ids are both in
    `known_fact_ids`, are distinct, and carry a recognised type and severity.
    """
    payload = extract_json_object(text)
    if payload is None or not isinstance(payload.get("contradictions", []), list):
        raise OracleResponseError("Oracle reply holds no contradictions object", expected_format="json")

    accepted = []
    for entry in payload.get("contradictions", []):
        if not isinstance(entry, dict):
            continue
        fact1_id = str(entry.get("fact1Id") or entry.get("fact1_id") or "")
        fact2_id = str(entry.get("fact2Id") or entry.get("fact2_id") or "")
        if fact1_id not in known_fact_ids or fact2_id not in known_fact_ids or fact1_id == fact2_id:
            continue
        try:
            contradiction_type = ContradictionType(str(entry.get("type", "")).lower())
            severity = ContradictionSeverity(str(entry.get("severity", "")).lower())
        except ValueError:
            continue
        accepted.append(OracleContradiction(
            fact1_id=fact1_id,
            fact2_id=fact2_id,
            contradiction_type=contradiction_type,
            severity=severity,
            description=str(entry.get("description", "")),
            analysis=str(entry.get("analysis", "")),
            implications=str(entry.get("implications", "")),
            confidence=_clamp_unit(entry.get("confidence")),
        ))
    return accepted


@dataclass
class OracleRefinement:
    adjusted_scores: Dict[str, float] = field(default_factory=dict)
    additional_factors: List[SuspicionFactor] = field(default_factory=list)
    missed_patterns: List[str] = field(default_factory=list)
    critical_next_steps: List[str] = field(default_factory=list)
    overall_assessment: str = ""
    confidence_in_scoring: float = 0.5


def parse_oracle_refinement(text: Optional[str], component_max: float) -> OracleRefinement:
    """
    Parse a scoring review. Adjusted components are clamped to [0, component_max];
    factors in the evidence category are dropped since forensic weight is not the
    oracle's to assign.
    """
    payload = extract_json_object(text)
    if payload is None:
        raise OracleResponseError("Oracle reply holds no JSON object", expected_format="json")

    adjusted = {}
    raw_scores = payload.get("adjustedScores") or {}
    if not isinstance(raw_scores, dict):
        raise OracleResponseError("adjustedScores must be an object", expected_format="json")
    for component in _COMPONENTS:
        if component not in raw_scores:
            continue
        try:
            value = float(raw_scores[component])
        except (TypeError, ValueError):
            raise OracleResponseError(f"Non-numeric adjusted score for {component}", expected_format="number")
        adjusted[component] = max(0.0, min(float(component_max), value))

    factors = []
    raw_factors = payload.get("additionalFactors")
    for raw_factor in raw_factors if isinstance(raw_factors, list) else []:
        if not isinstance(raw_factor, dict) or not raw_factor.get("factor"):
            continue
        try:
            category = FactorCategory(str(raw_factor.get("category", "behavior")).lower())
            weight = float(raw_factor.get("weight", 0))
        except (TypeError, ValueError):
            continue
        if category == FactorCategory.EVIDENCE:
            continue
        evidence = raw_factor.get("evidence") or []
        factors.append(SuspicionFactor(
            factor=str(raw_factor["factor"]),
            weight=max(0.0, min(float(component_max), weight)),
            category=category,
            evidence=[str(item) for item in evidence] if isinstance(evidence, list) else [str(evidence)],
        ))

    return OracleRefinement(
        adjusted_scores=adjusted,
        additional_factors=factors,
        missed_patterns=_string_list(payload.get("missedPatterns")),
        critical_next_steps=_string_list(payload.get("criticalNextSteps")),
        overall_assessment=str(payload.get("overallAssessment", "")),
        confidence_in_scoring=_clamp_unit(payload.get("confidenceInScoring")),
    )
