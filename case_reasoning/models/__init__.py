"""Data models for the case reasoning core."""

# Expose the model classes for easier imports
from .enums import (
    EntityType, EntityRole, AliasType, MatchType, FactType, TimeCertainty,
    VerificationStatus, ContradictionType, ContradictionSeverity, ResolutionStatus,
    DetectionMethod, RelationshipStrength, AlibiStatus, KnowledgeSeverity,
    FactorCategory, PriorityLevel, DataQuality, DnaStatus,
)
from .entity import (
    CanonicalEntity, EntityAlias, EntityMention, ResolvedMatch, UnresolvedMention,
    MergeSuggestion,
)
from .fact import AtomicFact, FactSource, TimeReference
from .person import (
    PersonProfile, PersonClaim, PersonAlibi, GuiltyKnowledgeIndicator, ScoringContext,
)
from .contradiction import Contradiction, ContradictionDetectionResult
from .scoring import SuspicionFactor, SuspicionScore, CaseRankings
