# case_reasoning/models/scoring.py
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, List, Dict, Any

from case_reasoning.models.enums import (
    FactorCategory, PriorityLevel, DataQuality, DnaStatus
)


@dataclass
class SuspicionFactor:
    factor: str
    weight: float
    category: FactorCategory
    evidence: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "factor": self.factor,
            "weight": self.weight,
            "category": self.category.value,
            "evidence": list(self.evidence),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SuspicionFactor':
        return cls(
            factor=data["factor"],
            weight=data.get("weight", 0),
            category=FactorCategory(data.get("category", FactorCategory.BEHAVIOR.value)),
            evidence=data.get("evidence", []),
        )


@dataclass
class ComponentScore:
    """Raw points and factors for one scoring component before clamping."""
    score: float = 0.0
    factors: List[SuspicionFactor] = field(default_factory=list)

    def add(self, factor: SuspicionFactor) -> None:
        self.score += factor.weight
        self.factors.append(factor)


@dataclass
class SuspicionScore:
    """Per-person, per-case score. Always derived from scratch; never patched in place."""
    person_id: str
    person_name: str
    role: str
    total_score: float
    opportunity_score: float
    means_score: float
    motive_score: float
    behavior_score: float
    evidence_score: float
    dna_status: DnaStatus
    priority_level: PriorityLevel
    data_quality: DataQuality
    confidence: float
    factors: List[SuspicionFactor] = field(default_factory=list)
    key_findings: List[str] = field(default_factory=list)
    critical_flags: List[str] = field(default_factory=list)
    investigative_recommendation: str = ""
    ranking: int = 0
    refined_by_oracle: bool = False
    oracle_notes: Dict[str, Any] = field(default_factory=dict)
    calculated_at: datetime = field(default_factory=datetime.now)

    @property
    def base_score(self) -> float:
        return self.opportunity_score + self.means_score + self.motive_score + self.behavior_score

    @property
    def normalized_score(self) -> float:
        return self.total_score

    def to_dict(self) -> Dict[str, Any]:
        return {
            "person_id": self.person_id,
            "person_name": self.person_name,
            "role": self.role,
            "total_score": self.total_score,
            "normalized_score": self.normalized_score,
            "ranking": self.ranking,
            "opportunity_score": self.opportunity_score,
            "means_score": self.means_score,
            "motive_score": self.motive_score,
            "behavior_score": self.behavior_score,
            "evidence_score": self.evidence_score,
            "dna_status": self.dna_status.value,
            "factors": [f.to_dict() for f in self.factors],
            "key_findings": list(self.key_findings),
            "critical_flags": list(self.critical_flags),
            "investigative_recommendation": self.investigative_recommendation,
            "priority_level": self.priority_level.value,
            "confidence": round(self.confidence, 4),
            "data_quality": self.data_quality.value,
            "refined_by_oracle": self.refined_by_oracle,
            "oracle_notes": self.oracle_notes,
            "calculated_at": self.calculated_at.isoformat(),
        }


@dataclass
class CaseRankings:
    case_id: str
    ranked_suspects: List[SuspicionScore] = field(default_factory=list)
    total_persons_analyzed: int = 0
    top_suspect: Optional[SuspicionScore] = None
    average_score: float = 0.0
    generated_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "case_id": self.case_id,
            "ranked_suspects": [s.to_dict() for s in self.ranked_suspects],
            "total_persons_analyzed": self.total_persons_analyzed,
            "top_suspect": self.top_suspect.person_id if self.top_suspect else None,
            "average_score": round(self.average_score, 2),
            "generated_at": self.generated_at.isoformat(),
        }
