# case_reasoning/models/person.py
from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any
import uuid

from case_reasoning.models.enums import (
    EntityRole, RelationshipStrength, AlibiStatus, KnowledgeSeverity, DnaStatus
)


@dataclass
class PersonProfile:
    case_id: str
    canonical_name: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    entity_id: Optional[str] = None
    aliases: List[str] = field(default_factory=list)
    role: EntityRole = EntityRole.UNKNOWN
    age_at_time: Optional[int] = None
    gender: Optional[str] = None
    occupation: Optional[str] = None
    relationship_to_victim: Optional[str] = None
    relationship_strength: RelationshipStrength = RelationshipStrength.UNKNOWN
    dna_submitted: bool = False
    dna_matched: bool = False
    dna_excluded: bool = False

    @property
    def dna_status(self) -> DnaStatus:
        if self.dna_matched:
            return DnaStatus.MATCHED
        if self.dna_excluded:
            return DnaStatus.EXCLUDED
        if self.dna_submitted:
            return DnaStatus.PENDING
        return DnaStatus.NOT_SUBMITTED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "case_id": self.case_id,
            "canonical_name": self.canonical_name,
            "entity_id": self.entity_id,
            "aliases": list(self.aliases),
            "role": self.role.value,
            "age_at_time": self.age_at_time,
            "gender": self.gender,
            "occupation": self.occupation,
            "relationship_to_victim": self.relationship_to_victim,
            "relationship_strength": self.relationship_strength.value,
            "dna_submitted": self.dna_submitted,
            "dna_matched": self.dna_matched,
            "dna_excluded": self.dna_excluded,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PersonProfile':
        return cls(
            id=data.get("id") or str(uuid.uuid4()),
            case_id=data["case_id"],
            canonical_name=data["canonical_name"],
            entity_id=data.get("entity_id"),
            aliases=data.get("aliases", []),
            role=EntityRole(data.get("role", EntityRole.UNKNOWN.value)),
            age_at_time=data.get("age_at_time"),
            gender=data.get("gender"),
            occupation=data.get("occupation"),
            relationship_to_victim=data.get("relationship_to_victim"),
            relationship_strength=RelationshipStrength(
                data.get("relationship_strength", RelationshipStrength.UNKNOWN.value)),
            dna_submitted=data.get("dna_submitted", False),
            dna_matched=data.get("dna_matched", False),
            dna_excluded=data.get("dna_excluded", False),
        )


@dataclass
class PersonClaim:
    person_id: str
    topic: str
    claim_text: str
    claim_type: str = "statement"
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    is_suspicious: bool = False
    contradicted_by: List[str] = field(default_factory=list)
    has_evolved: bool = False
    evolution_notes: Optional[str] = None
    original_quote: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "person_id": self.person_id,
            "topic": self.topic,
            "claim_text": self.claim_text,
            "claim_type": self.claim_type,
            "is_suspicious": self.is_suspicious,
            "contradicted_by": list(self.contradicted_by),
            "has_evolved": self.has_evolved,
            "evolution_notes": self.evolution_notes,
            "original_quote": self.original_quote,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PersonClaim':
        return cls(
            id=data.get("id") or str(uuid.uuid4()),
            person_id=data["person_id"],
            topic=data.get("topic", ""),
            claim_text=data.get("claim_text", ""),
            claim_type=data.get("claim_type", "statement"),
            is_suspicious=data.get("is_suspicious", False),
            contradicted_by=data.get("contradicted_by", []),
            has_evolved=data.get("has_evolved", False),
            evolution_notes=data.get("evolution_notes"),
            original_quote=data.get("original_quote", ""),
        )


@dataclass
class PersonAlibi:
    person_id: str
    location: str = ""
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    verification_status: AlibiStatus = AlibiStatus.UNVERIFIED
    conflicting_alibi_ids: List[str] = field(default_factory=list)
    conflict_description: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "person_id": self.person_id,
            "location": self.location,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "verification_status": self.verification_status.value,
            "conflicting_alibi_ids": list(self.conflicting_alibi_ids),
            "conflict_description": self.conflict_description,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PersonAlibi':
        return cls(
            id=data.get("id") or str(uuid.uuid4()),
            person_id=data["person_id"],
            location=data.get("location", ""),
            start_time=data.get("start_time"),
            end_time=data.get("end_time"),
            verification_status=AlibiStatus(data.get("verification_status", AlibiStatus.UNVERIFIED.value)),
            conflicting_alibi_ids=data.get("conflicting_alibi_ids", []),
            conflict_description=data.get("conflict_description"),
        )


@dataclass
class GuiltyKnowledgeIndicator:
    """Something the person knew that only someone involved should have known."""
    person_id: str
    knowledge_description: str
    knowledge_type: str = "detail"
    severity: KnowledgeSeverity = KnowledgeSeverity.LOW
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "person_id": self.person_id,
            "knowledge_description": self.knowledge_description,
            "knowledge_type": self.knowledge_type,
            "severity": self.severity.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'GuiltyKnowledgeIndicator':
        return cls(
            id=data.get("id") or str(uuid.uuid4()),
            person_id=data["person_id"],
            knowledge_description=data.get("knowledge_description", ""),
            knowledge_type=data.get("knowledge_type", "detail"),
            severity=KnowledgeSeverity(data.get("severity", KnowledgeSeverity.LOW.value)),
        )


@dataclass
class ScoringContext:
    case_id: str
    victim_name: str = ""
    crime_date: Optional[str] = None
    crime_location: str = ""
    crime_type: str = ""
    known_facts: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "case_id": self.case_id,
            "victim_name": self.victim_name,
            "crime_date": self.crime_date,
            "crime_location": self.crime_location,
            "crime_type": self.crime_type,
            "known_facts": list(self.known_facts),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ScoringContext':
        return cls(
            case_id=data["case_id"],
            victim_name=data.get("victim_name", ""),
            crime_date=data.get("crime_date"),
            crime_location=data.get("crime_location", ""),
            crime_type=data.get("crime_type", ""),
            known_facts=data.get("known_facts", []),
        )
