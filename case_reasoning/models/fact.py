# case_reasoning/models/fact.py
from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any, Tuple
import uuid

from case_reasoning.models.enums import FactType, TimeCertainty, VerificationStatus
from case_reasoning.utils.temporal import time_interval


@dataclass
class TimeReference:
    """When a fact is claimed to have happened: an instant or an interval plus how sure the source is."""
    earliest: Optional[str] = None
    latest: Optional[str] = None
    certainty: TimeCertainty = TimeCertainty.UNKNOWN
    original_text: str = ""
    relative_anchor: Optional[str] = None

    def interval(self) -> Optional[Tuple[float, float]]:
        return time_interval(self.earliest, self.latest)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "earliest": self.earliest,
            "latest": self.latest,
            "certainty": self.certainty.value,
            "original_text": self.original_text,
            "relative_anchor": self.relative_anchor,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional['TimeReference']:
        if not data:
            return None
        return cls(
            earliest=data.get("earliest"),
            latest=data.get("latest"),
            certainty=TimeCertainty(data.get("certainty", TimeCertainty.UNKNOWN.value)),
            original_text=data.get("original_text", ""),
            relative_anchor=data.get("relative_anchor"),
        )


@dataclass
class FactSource:
    speaker_name: str = ""
    speaker_id: Optional[str] = None
    document_id: Optional[str] = None
    document_name: str = ""
    document_type: str = ""
    page_number: Optional[int] = None
    recorded_by: Optional[str] = None
    date_recorded: Optional[str] = None
    original_quote: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "speaker_id": self.speaker_id,
            "speaker_name": self.speaker_name,
            "document_id": self.document_id,
            "document_name": self.document_name,
            "document_type": self.document_type,
            "page_number": self.page_number,
            "recorded_by": self.recorded_by,
            "date_recorded": self.date_recorded,
            "original_quote": self.original_quote,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'FactSource':
        data = data or {}
        return cls(
            speaker_id=data.get("speaker_id"),
            speaker_name=data.get("speaker_name", ""),
            document_id=data.get("document_id"),
            document_name=data.get("document_name", ""),
            document_type=data.get("document_type", ""),
            page_number=data.get("page_number"),
            recorded_by=data.get("recorded_by"),
            date_recorded=data.get("date_recorded"),
            original_quote=data.get("original_quote", ""),
        )


@dataclass
class AtomicFact:
    """
    A single factual assertion extracted upstream from a statement or document.

    This package only reads facts and annotates them (verification status,
    contradicting ids); it never creates them from raw text.
    """
    case_id: str
    fact_type: FactType
    subject: str
    predicate: str
    source: FactSource = field(default_factory=FactSource)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    object: Optional[str] = None
    location: Optional[str] = None
    time_reference: Optional[TimeReference] = None
    mentioned_persons: List[str] = field(default_factory=list)
    mentioned_locations: List[str] = field(default_factory=list)
    mentioned_evidence: List[str] = field(default_factory=list)
    mentioned_vehicles: List[str] = field(default_factory=list)
    corroborating_fact_ids: List[str] = field(default_factory=list)
    contradicting_fact_ids: List[str] = field(default_factory=list)
    related_fact_ids: List[str] = field(default_factory=list)
    verification_status: VerificationStatus = VerificationStatus.UNVERIFIED
    confidence_score: float = 0.5
    is_suspicious: bool = False
    suspicion_reason: Optional[str] = None

    @property
    def speaker(self) -> str:
        return self.source.speaker_name

    @property
    def time_text(self) -> str:
        return self.time_reference.original_text if self.time_reference else ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "case_id": self.case_id,
            "fact_type": self.fact_type.value,
            "subject": self.subject,
            "predicate": self.predicate,
            "object": self.object,
            "location": self.location,
            "time_reference": self.time_reference.to_dict() if self.time_reference else None,
            "source": self.source.to_dict(),
            "mentioned_persons": list(self.mentioned_persons),
            "mentioned_locations": list(self.mentioned_locations),
            "mentioned_evidence": list(self.mentioned_evidence),
            "mentioned_vehicles": list(self.mentioned_vehicles),
            "corroborating_fact_ids": list(self.corroborating_fact_ids),
            "contradicting_fact_ids": list(self.contradicting_fact_ids),
            "related_fact_ids": list(self.related_fact_ids),
            "verification_status": self.verification_status.value,
            "confidence_score": self.confidence_score,
            "is_suspicious": self.is_suspicious,
            "suspicion_reason": self.suspicion_reason,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AtomicFact':
        return cls(
            id=data.get("id") or str(uuid.uuid4()),
            case_id=data["case_id"],
            fact_type=FactType(data.get("fact_type", FactType.OTHER.value)),
            subject=data.get("subject", ""),
            predicate=data.get("predicate", ""),
            object=data.get("object"),
            location=data.get("location"),
            time_reference=TimeReference.from_dict(data.get("time_reference")),
            source=FactSource.from_dict(data.get("source")),
            mentioned_persons=data.get("mentioned_persons", []),
            mentioned_locations=data.get("mentioned_locations", []),
            mentioned_evidence=data.get("mentioned_evidence", []),
            mentioned_vehicles=data.get("mentioned_vehicles", []),
            corroborating_fact_ids=data.get("corroborating_fact_ids", []),
            contradicting_fact_ids=data.get("contradicting_fact_ids", []),
            related_fact_ids=data.get("related_fact_ids", []),
            verification_status=VerificationStatus(
                data.get("verification_status", VerificationStatus.UNVERIFIED.value)),
            confidence_score=data.get("confidence_score", 0.5),
            is_suspicious=data.get("is_suspicious", False),
            suspicion_reason=data.get("suspicion_reason"),
        )
