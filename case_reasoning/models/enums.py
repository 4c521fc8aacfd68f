# case_reasoning/models/enums.py
from enum import Enum


class EntityType(Enum):
    PERSON = "person"
    ORGANIZATION = "organization"
    LOCATION = "location"
    VEHICLE = "vehicle"
    PHONE = "phone"
    EMAIL = "email"
    WEAPON = "weapon"
    EVIDENCE = "evidence"


class EntityRole(Enum):
    VICTIM = "victim"
    SUSPECT = "suspect"
    WITNESS = "witness"
    PERSON_OF_INTEREST = "person_of_interest"
    FAMILY = "family"
    ASSOCIATE = "associate"
    INVESTIGATOR = "investigator"
    EXPERT = "expert"
    OTHER = "other"
    UNKNOWN = "unknown"


class AliasType(Enum):
    FULL_NAME = "full_name"
    NICKNAME = "nickname"
    MAIDEN_NAME = "maiden_name"
    MISSPELLING = "misspelling"
    ABBREVIATION = "abbreviation"
    TITLE_VARIATION = "title_variation"
    PARTIAL_NAME = "partial_name"
    PHONETIC_MATCH = "phonetic_match"


class MatchType(Enum):
    """How a mention was tied to a canonical entity."""
    EXACT = "exact"
    FUZZY = "fuzzy"
    PHONETIC = "phonetic"
    CONTEXT = "context"
    AI = "ai"


class FactType(Enum):
    LOCATION_CLAIM = "location_claim"
    TIMELINE_CLAIM = "timeline_claim"
    ACTION_CLAIM = "action_claim"
    OBSERVATION = "observation"
    RELATIONSHIP = "relationship"
    PHYSICAL_EVIDENCE = "physical_evidence"
    ALIBI = "alibi"
    ACCUSATION = "accusation"
    DENIAL = "denial"
    ADMISSION = "admission"
    BEHAVIORAL_OBSERVATION = "behavioral_observation"
    FORENSIC_FINDING = "forensic_finding"
    COMMUNICATION = "communication"
    POSSESSION = "possession"
    KNOWLEDGE_CLAIM = "knowledge_claim"
    STATE_OF_MIND = "state_of_mind"
    PRIOR_INCIDENT = "prior_incident"
    PHYSICAL_DESCRIPTION = "physical_description"
    VEHICLE_SIGHTING = "vehicle_sighting"
    OTHER = "other"


class TimeCertainty(Enum):
    EXACT = "exact"
    APPROXIMATE = "approximate"
    ESTIMATED = "estimated"
    RANGE = "range"
    UNKNOWN = "unknown"


class VerificationStatus(Enum):
    UNVERIFIED = "unverified"
    CORROBORATED = "corroborated"
    PARTIALLY_VERIFIED = "partially_verified"
    CONTRADICTED = "contradicted"
    IMPOSSIBLE = "impossible"
    CONFIRMED = "confirmed"


class ContradictionType(Enum):
    TIMELINE_IMPOSSIBLE = "timeline_impossible"
    STATEMENT_CONFLICT = "statement_conflict"
    SELF_CONTRADICTION = "self_contradiction"
    PHYSICAL_IMPOSSIBLE = "physical_impossible"
    EVIDENCE_CONTRADICTION = "evidence_contradiction"
    WITNESS_CONFLICT = "witness_conflict"
    ALIBI_FAILURE = "alibi_failure"
    STORY_EVOLUTION = "story_evolution"
    DETAIL_INCONSISTENCY = "detail_inconsistency"


class ContradictionSeverity(Enum):
    MINOR = "minor"
    SIGNIFICANT = "significant"
    MAJOR = "major"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return list(ContradictionSeverity).index(self)


class ResolutionStatus(Enum):
    """Only UNRESOLVED is ever written by detection; the rest come from human review."""
    UNRESOLVED = "unresolved"
    EXPLAINED = "explained"
    CONFIRMED_LIE = "confirmed_lie"
    ERROR_IN_RECORD = "error_in_record"
    DISMISSED = "dismissed"


class DetectionMethod(Enum):
    AUTOMATIC = "automatic"
    MANUAL = "manual"
    AI_ENHANCED = "ai_enhanced"


class RelationshipStrength(Enum):
    CLOSE = "close"
    ACQUAINTANCE = "acquaintance"
    DISTANT = "distant"
    UNKNOWN = "unknown"


class AlibiStatus(Enum):
    VERIFIED = "verified"
    PARTIALLY_VERIFIED = "partially_verified"
    UNVERIFIED = "unverified"
    DISPUTED = "disputed"
    IMPOSSIBLE = "impossible"
    UNKNOWN = "unknown"


class KnowledgeSeverity(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class FactorCategory(Enum):
    OPPORTUNITY = "opportunity"
    MEANS = "means"
    MOTIVE = "motive"
    BEHAVIOR = "behavior"
    EVIDENCE = "evidence"


class PriorityLevel(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class DataQuality(Enum):
    INSUFFICIENT = "insufficient"
    PARTIAL = "partial"
    ADEQUATE = "adequate"
    COMPREHENSIVE = "comprehensive"


class DnaStatus(Enum):
    MATCHED = "matched"
    EXCLUDED = "excluded"
    PENDING = "pending"
    NOT_SUBMITTED = "not_submitted"
