# case_reasoning/models/entity.py
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, List, Dict, Any, Union
import uuid

from case_reasoning.models.enums import EntityType, EntityRole, AliasType, MatchType


@dataclass
class EntityAlias:
    """A normalized (lowercase) string form bound to one canonical entity."""
    alias_value: str
    alias_type: AliasType = AliasType.NICKNAME
    confidence: float = 1.0
    is_confirmed: bool = True
    source_document_id: Optional[str] = None

    def __post_init__(self):
        self.alias_value = self.alias_value.strip().lower()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "alias_value": self.alias_value,
            "alias_type": self.alias_type.value,
            "confidence": self.confidence,
            "is_confirmed": self.is_confirmed,
            "source_document_id": self.source_document_id,
        }

    @classmethod
    def from_dict(cls, data: Union[Dict[str, Any], str]) -> 'EntityAlias':
        if isinstance(data, str):
            return cls(alias_value=data)
        return cls(
            alias_value=data["alias_value"],
            alias_type=AliasType(data.get("alias_type", AliasType.NICKNAME.value)),
            confidence=data.get("confidence", 1.0),
            is_confirmed=data.get("is_confirmed", True),
            source_document_id=data.get("source_document_id"),
        )


@dataclass
class CanonicalEntity:
    """
    The de-duplicated identity a set of mentions refers to.

    Mention and document counters only move through `register_mention` and `absorb`;
    nothing else should assign them.
    """
    case_id: str
    canonical_name: str
    entity_type: EntityType = EntityType.PERSON
    role: EntityRole = EntityRole.UNKNOWN
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    description: str = ""
    aliases: List[EntityAlias] = field(default_factory=list)
    mention_count: int = 0
    document_count: int = 0
    document_ids: List[str] = field(default_factory=list)
    suspicion_score: float = 0.0
    is_verified: bool = False
    verified_by: Optional[str] = None
    verified_at: Optional[datetime] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        self.add_alias(self.canonical_name, AliasType.FULL_NAME)

    @property
    def alias_values(self) -> List[str]:
        return [alias.alias_value for alias in self.aliases]

    def has_alias(self, value: str) -> bool:
        return value.strip().lower() in self.alias_values

    def add_alias(self, value: str, alias_type: AliasType = AliasType.NICKNAME,
                  confidence: float = 1.0, source_document_id: Optional[str] = None) -> bool:
        """Insert-or-ignore by alias value. Returns True when a new alias was added."""
        if not value or not value.strip() or self.has_alias(value):
            return False
        self.aliases.append(EntityAlias(
            alias_value=value,
            alias_type=alias_type,
            confidence=confidence,
            source_document_id=source_document_id,
        ))
        self.updated_at = datetime.now()
        return True

    def register_mention(self, document_id: Optional[str]) -> None:
        self.mention_count += 1
        if document_id and document_id not in self.document_ids:
            self.document_ids.append(document_id)
            self.document_count += 1
        self.updated_at = datetime.now()

    def absorb(self, other: 'CanonicalEntity', verified_by: Optional[str] = None) -> None:
        """Fold another entity's aliases and counters into this one and mark it verified."""
        for alias in other.aliases:
            self.add_alias(alias.alias_value, alias.alias_type, alias.confidence, alias.source_document_id)
        self.add_alias(other.canonical_name, AliasType.FULL_NAME)
        self.mention_count += other.mention_count
        for document_id in other.document_ids:
            if document_id not in self.document_ids:
                self.document_ids.append(document_id)
        self.document_count = max(len(self.document_ids), self.document_count)
        self.is_verified = True
        self.verified_by = verified_by
        self.verified_at = datetime.now()
        self.updated_at = self.verified_at

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "case_id": self.case_id,
            "canonical_name": self.canonical_name,
            "entity_type": self.entity_type.value,
            "role": self.role.value,
            "description": self.description,
            "aliases": [alias.to_dict() for alias in self.aliases],
            "mention_count": self.mention_count,
            "document_count": self.document_count,
            "document_ids": list(self.document_ids),
            "suspicion_score": self.suspicion_score,
            "is_verified": self.is_verified,
            "verified_by": self.verified_by,
            "verified_at": self.verified_at.isoformat() if self.verified_at else None,
            "metadata": self.metadata,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CanonicalEntity':
        entity = cls(
            id=data.get("id") or str(uuid.uuid4()),
            case_id=data["case_id"],
            canonical_name=data["canonical_name"],
            entity_type=EntityType(data.get("entity_type", EntityType.PERSON.value)),
            role=EntityRole(data.get("role", EntityRole.UNKNOWN.value)),
            description=data.get("description", ""),
            suspicion_score=data.get("suspicion_score", 0.0),
            is_verified=data.get("is_verified", False),
            verified_by=data.get("verified_by"),
            metadata=data.get("metadata", {}),
        )
        for raw_alias in data.get("aliases", []):
            alias = EntityAlias.from_dict(raw_alias)
            entity.add_alias(alias.alias_value, alias.alias_type, alias.confidence, alias.source_document_id)
        entity.document_ids = list(data.get("document_ids", []))
        entity.mention_count = data.get("mention_count", 0)
        entity.document_count = data.get("document_count", len(entity.document_ids))
        return entity


@dataclass
class EntityMention:
    """One occurrence of a name inside one document."""
    entity_id: str
    document_id: str
    mention_text: str
    context_before: str = ""
    context_after: str = ""
    full_sentence: str = ""
    page_number: Optional[int] = None
    confidence: float = 1.0
    match_type: MatchType = MatchType.EXACT
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "entity_id": self.entity_id,
            "document_id": self.document_id,
            "mention_text": self.mention_text,
            "context_before": self.context_before,
            "context_after": self.context_after,
            "full_sentence": self.full_sentence,
            "page_number": self.page_number,
            "confidence": self.confidence,
            "match_type": self.match_type.value,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class ResolvedMatch:
    """A mention tied to an existing canonical entity."""
    canonical_entity_id: str
    canonical_name: str
    confidence: float
    match_type: MatchType
    matched_on: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "canonical_entity_id": self.canonical_entity_id,
            "canonical_name": self.canonical_name,
            "confidence": round(self.confidence, 4),
            "match_type": self.match_type.value,
            "matched_on": self.matched_on,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ResolvedMatch':
        return cls(
            canonical_entity_id=data["canonical_entity_id"],
            canonical_name=data["canonical_name"],
            confidence=data["confidence"],
            match_type=MatchType(data["match_type"]),
            matched_on=data.get("matched_on", ""),
        )


@dataclass
class UnresolvedMention:
    """A mention that could not be auto-accepted; carries every candidate for a reviewer."""
    mention_text: str
    document_id: str
    context: str
    potential_matches: List[ResolvedMatch] = field(default_factory=list)
    needs_human_review: bool = False
    suggested_canonical_name: str = ""
    suggested_role: EntityRole = EntityRole.UNKNOWN

    @property
    def best_match(self) -> Optional[ResolvedMatch]:
        return self.potential_matches[0] if self.potential_matches else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mention_text": self.mention_text,
            "document_id": self.document_id,
            "context": self.context,
            "potential_matches": [match.to_dict() for match in self.potential_matches],
            "needs_human_review": self.needs_human_review,
            "suggested_canonical_name": self.suggested_canonical_name,
            "suggested_role": self.suggested_role.value,
        }


ResolutionResult = Union[ResolvedMatch, UnresolvedMention]


@dataclass
class MergeSuggestion:
    entity1: CanonicalEntity
    entity2: CanonicalEntity
    confidence: float
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entity1_id": self.entity1.id,
            "entity1_name": self.entity1.canonical_name,
            "entity2_id": self.entity2.id,
            "entity2_name": self.entity2.canonical_name,
            "confidence": round(self.confidence, 4),
            "reason": self.reason,
        }
