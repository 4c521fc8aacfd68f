# case_reasoning/models/contradiction.py
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, List, Dict, Any, Tuple

from case_reasoning.models.enums import (
    ContradictionType, ContradictionSeverity, ResolutionStatus, DetectionMethod
)


def pair_key(fact1_id: str, fact2_id: str) -> Tuple[str, str]:
    """Order-independent identity of a fact pair."""
    first, second = sorted((fact1_id, fact2_id))
    return first, second


@dataclass
class Contradiction:
    """
    A detected conflict between two facts.

    The pair is stored sorted (fact1_id <= fact2_id) so the same two facts always
    produce the same key no matter which detector found them or in what order.
    """
    case_id: str
    fact1_id: str
    fact2_id: str
    contradiction_type: ContradictionType
    severity: ContradictionSeverity
    description: str
    fact1_summary: str = ""
    fact2_summary: str = ""
    analysis: str = ""
    implications: str = ""
    suggested_followup: str = ""
    involved_persons: List[str] = field(default_factory=list)
    resolution_status: ResolutionStatus = ResolutionStatus.UNRESOLVED
    resolution_notes: Optional[str] = None
    resolved_by: Optional[str] = None
    resolved_at: Optional[datetime] = None
    detection_method: DetectionMethod = DetectionMethod.AUTOMATIC
    confidence_score: float = 0.5
    detected_at: datetime = field(default_factory=datetime.now)
    id: str = ""

    def __post_init__(self):
        if self.fact1_id > self.fact2_id:
            self.fact1_id, self.fact2_id = self.fact2_id, self.fact1_id
            self.fact1_summary, self.fact2_summary = self.fact2_summary, self.fact1_summary
        if not self.id:
            self.id = f"{self.case_id}:{self.fact1_id}:{self.fact2_id}"

    @property
    def pair_key(self) -> Tuple[str, str]:
        return self.fact1_id, self.fact2_id

    @property
    def is_self_pair(self) -> bool:
        return self.fact1_id == self.fact2_id

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "case_id": self.case_id,
            "fact1_id": self.fact1_id,
            "fact2_id": self.fact2_id,
            "fact1_summary": self.fact1_summary,
            "fact2_summary": self.fact2_summary,
            "contradiction_type": self.contradiction_type.value,
            "severity": self.severity.value,
            "description": self.description,
            "analysis": self.analysis,
            "implications": self.implications,
            "suggested_followup": self.suggested_followup,
            "involved_persons": list(self.involved_persons),
            "resolution_status": self.resolution_status.value,
            "resolution_notes": self.resolution_notes,
            "resolved_by": self.resolved_by,
            "resolved_at": self.resolved_at.isoformat() if self.resolved_at else None,
            "detection_method": self.detection_method.value,
            "confidence_score": round(self.confidence_score, 4),
            "detected_at": self.detected_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Contradiction':
        detected_at = data.get("detected_at")
        resolved_at = data.get("resolved_at")
        return cls(
            id=data.get("id", ""),
            case_id=data["case_id"],
            fact1_id=data["fact1_id"],
            fact2_id=data["fact2_id"],
            fact1_summary=data.get("fact1_summary", ""),
            fact2_summary=data.get("fact2_summary", ""),
            contradiction_type=ContradictionType(data["contradiction_type"]),
            severity=ContradictionSeverity(data["severity"]),
            description=data.get("description", ""),
            analysis=data.get("analysis", ""),
            implications=data.get("implications", ""),
            suggested_followup=data.get("suggested_followup", ""),
            involved_persons=data.get("involved_persons", []),
            resolution_status=ResolutionStatus(data.get("resolution_status", ResolutionStatus.UNRESOLVED.value)),
            resolution_notes=data.get("resolution_notes"),
            resolved_by=data.get("resolved_by"),
            resolved_at=datetime.fromisoformat(resolved_at) if resolved_at else None,
            detection_method=DetectionMethod(data.get("detection_method", DetectionMethod.AUTOMATIC.value)),
            confidence_score=data.get("confidence_score", 0.5),
            detected_at=datetime.fromisoformat(detected_at) if detected_at else datetime.now(),
        )


@dataclass
class ContradictionDetectionResult:
    case_id: str
    total_contradictions_found: int = 0
    new_contradictions: List[Contradiction] = field(default_factory=list)
    by_severity: Dict[str, int] = field(default_factory=dict)
    by_type: Dict[str, int] = field(default_factory=dict)
    involved_persons: List[str] = field(default_factory=list)
    oracle_used: bool = False
    processing_time_ms: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "case_id": self.case_id,
            "total_contradictions_found": self.total_contradictions_found,
            "new_contradictions": [c.to_dict() for c in self.new_contradictions],
            "by_severity": dict(self.by_severity),
            "by_type": dict(self.by_type),
            "involved_persons": list(self.involved_persons),
            "oracle_used": self.oracle_used,
            "processing_time_ms": round(self.processing_time_ms, 2),
        }
