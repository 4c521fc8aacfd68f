# case_reasoning/services/repository.py
"""
Persistence seam for the case reasoning core.

`CaseRepository` is what the agents talk to; storage engines plug in behind it.
`InMemoryCaseRepository` is the bundled implementation used by the CLI and tests.
Contradictions are upserted by their sorted fact pair, so re-running detection
never duplicates rows.
"""
import threading
from abc import ABC, abstractmethod
from collections import OrderedDict
from contextlib import contextmanager
from typing import Dict, List, Optional, Tuple, Iterator

from case_reasoning.config.constants import FIRST_PERSON_SUBJECTS
from case_reasoning.core.exceptions import (
    CaseNotFoundError, EntityNotFoundError, FactNotFoundError, PersonNotFoundError,
    ContradictionNotFoundError, DuplicateContradictionError, SelfContradictionPairError,
)
from case_reasoning.models.entity import CanonicalEntity, EntityAlias, EntityMention
from case_reasoning.models.enums import EntityType, VerificationStatus
from case_reasoning.models.fact import AtomicFact
from case_reasoning.models.contradiction import Contradiction
from case_reasoning.models.person import (
    PersonProfile, PersonClaim, PersonAlibi, GuiltyKnowledgeIndicator
)
from case_reasoning.models.scoring import SuspicionScore
from case_reasoning.utils.text_processing import clean_entity_name


class CaseRepository(ABC):
    """CRUD with upsert semantics, keyed by case id."""

    # --- cases ---
    @abstractmethod
    def add_case(self, case_id: str) -> None: ...

    @abstractmethod
    def has_case(self, case_id: str) -> bool: ...

    def require_case(self, case_id: str) -> None:
        if not self.has_case(case_id):
            raise CaseNotFoundError(case_id)

    # --- entities, aliases, mentions ---
    @abstractmethod
    def add_entity(self, entity: CanonicalEntity) -> CanonicalEntity: ...

    @abstractmethod
    def find_entity(self, entity_id: str) -> Optional[CanonicalEntity]: ...

    def get_entity(self, entity_id: str) -> CanonicalEntity:
        entity = self.find_entity(entity_id)
        if entity is None:
            raise EntityNotFoundError(entity_id)
        return entity

    @abstractmethod
    def list_entities(self, case_id: str, entity_type: Optional[EntityType] = None) -> List[CanonicalEntity]: ...

    @abstractmethod
    def delete_entity(self, entity_id: str) -> None: ...

    @abstractmethod
    def find_entity_by_alias(self, case_id: str, alias_value: str) -> Optional[CanonicalEntity]: ...

    def list_aliases(self, case_id: str) -> List[Tuple[CanonicalEntity, EntityAlias]]:
        return [(entity, alias) for entity in self.list_entities(case_id) for alias in entity.aliases]

    @abstractmethod
    def add_mention(self, mention: EntityMention) -> None: ...

    @abstractmethod
    def list_mentions(self, entity_id: str) -> List[EntityMention]: ...

    @abstractmethod
    def relink_mentions(self, from_entity_id: str, to_entity_id: str) -> int: ...

    @abstractmethod
    def entity_lock(self, *entity_ids: str): ...

    # --- facts ---
    @abstractmethod
    def add_fact(self, fact: AtomicFact) -> AtomicFact: ...

    @abstractmethod
    def find_fact(self, fact_id: str) -> Optional[AtomicFact]: ...

    def get_fact(self, fact_id: str) -> AtomicFact:
        fact = self.find_fact(fact_id)
        if fact is None:
            raise FactNotFoundError(fact_id)
        return fact

    @abstractmethod
    def list_facts(self, case_id: str) -> List[AtomicFact]: ...

    @abstractmethod
    def mark_fact_contradicted(self, fact_id: str, contradicting_fact_id: str) -> None: ...

    # --- contradictions ---
    @abstractmethod
    def upsert_contradiction(self, contradiction: Contradiction) -> bool:
        """Insert unless the pair already exists. Returns True when a new row was written."""

    def insert_contradiction(self, contradiction: Contradiction) -> None:
        """Strict insert: a pair that is already stored is an invariant violation."""
        if self.find_contradiction_by_pair(contradiction.case_id, contradiction.pair_key) is not None:
            raise DuplicateContradictionError(contradiction.pair_key)
        self.upsert_contradiction(contradiction)

    @abstractmethod
    def find_contradiction_by_pair(self, case_id: str, pair: Tuple[str, str]) -> Optional[Contradiction]: ...

    @abstractmethod
    def find_contradiction(self, contradiction_id: str) -> Optional[Contradiction]: ...

    def get_contradiction(self, contradiction_id: str) -> Contradiction:
        contradiction = self.find_contradiction(contradiction_id)
        if contradiction is None:
            raise ContradictionNotFoundError(contradiction_id)
        return contradiction

    @abstractmethod
    def list_contradictions(self, case_id: str) -> List[Contradiction]: ...

    # --- persons ---
    @abstractmethod
    def add_person(self, profile: PersonProfile) -> PersonProfile: ...

    @abstractmethod
    def find_person(self, person_id: str) -> Optional[PersonProfile]: ...

    def get_person(self, person_id: str) -> PersonProfile:
        profile = self.find_person(person_id)
        if profile is None:
            raise PersonNotFoundError(person_id)
        return profile

    @abstractmethod
    def list_persons(self, case_id: str) -> List[PersonProfile]: ...

    @abstractmethod
    def add_claim(self, claim: PersonClaim) -> None: ...

    @abstractmethod
    def list_claims(self, person_id: str) -> List[PersonClaim]: ...

    @abstractmethod
    def add_alibi(self, alibi: PersonAlibi) -> None: ...

    @abstractmethod
    def list_alibis(self, person_id: str) -> List[PersonAlibi]: ...

    @abstractmethod
    def add_guilty_knowledge(self, indicator: GuiltyKnowledgeIndicator) -> None: ...

    @abstractmethod
    def list_guilty_knowledge(self, person_id: str) -> List[GuiltyKnowledgeIndicator]: ...

    # --- scores ---
    @abstractmethod
    def save_score(self, case_id: str, score: SuspicionScore) -> None: ...

    @abstractmethod
    def find_score(self, case_id: str, person_id: str) -> Optional[SuspicionScore]: ...


class InMemoryCaseRepository(CaseRepository):
    """Dict-backed repository. Safe for concurrent use from several threads."""

    def __init__(self):
        self._lock = threading.RLock()
        self._entity_locks: Dict[str, threading.Lock] = {}
        self._cases: "OrderedDict[str, None]" = OrderedDict()
        self._entities: "OrderedDict[str, CanonicalEntity]" = OrderedDict()
        self._mentions: List[EntityMention] = []
        self._facts: "OrderedDict[str, AtomicFact]" = OrderedDict()
        self._contradictions: "OrderedDict[Tuple[str, str, str], Contradiction]" = OrderedDict()
        self._persons: "OrderedDict[str, PersonProfile]" = OrderedDict()
        self._claims: List[PersonClaim] = []
        self._alibis: List[PersonAlibi] = []
        self._guilty_knowledge: List[GuiltyKnowledgeIndicator] = []
        self._scores: Dict[Tuple[str, str], SuspicionScore] = {}

    # --- cases ---
    def add_case(self, case_id: str) -> None:
        with self._lock:
            self._cases.setdefault(case_id, None)

    def has_case(self, case_id: str) -> bool:
        return case_id in self._cases

    # --- entities ---
    def add_entity(self, entity: CanonicalEntity) -> CanonicalEntity:
        with self._lock:
            self.add_case(entity.case_id)
            self._entities[entity.id] = entity
        return entity

    def find_entity(self, entity_id: str) -> Optional[CanonicalEntity]:
        return self._entities.get(entity_id)

    def list_entities(self, case_id: str, entity_type: Optional[EntityType] = None) -> List[CanonicalEntity]:
        with self._lock:
            return [
                e for e in self._entities.values()
                if e.case_id == case_id and (entity_type is None or e.entity_type == entity_type)
            ]

    def delete_entity(self, entity_id: str) -> None:
        with self._lock:
            if self._entities.pop(entity_id, None) is None:
                raise EntityNotFoundError(entity_id)
            self._entity_locks.pop(entity_id, None)

    def find_entity_by_alias(self, case_id: str, alias_value: str) -> Optional[CanonicalEntity]:
        needle = alias_value.strip().lower()
        with self._lock:
            for entity in self._entities.values():
                if entity.case_id == case_id and entity.has_alias(needle):
                    return entity
        return None

    def add_mention(self, mention: EntityMention) -> None:
        with self._lock:
            self._mentions.append(mention)

    def list_mentions(self, entity_id: str) -> List[EntityMention]:
        with self._lock:
            return [m for m in self._mentions if m.entity_id == entity_id]

    def relink_mentions(self, from_entity_id: str, to_entity_id: str) -> int:
        moved = 0
        with self._lock:
            for mention in self._mentions:
                if mention.entity_id == from_entity_id:
                    mention.entity_id = to_entity_id
                    moved += 1
        return moved

    @contextmanager
    def entity_lock(self, *entity_ids: str) -> Iterator[None]:
        """Critical section over one or more entities; locks taken in sorted order."""
        with self._lock:
            locks = [self._entity_locks.setdefault(eid, threading.Lock()) for eid in sorted(set(entity_ids))]
        for lock in locks:
            lock.acquire()
        try:
            yield
        finally:
            for lock in reversed(locks):
                lock.release()

    # --- facts ---
    def add_fact(self, fact: AtomicFact) -> AtomicFact:
        with self._lock:
            self.add_case(fact.case_id)
            self._facts[fact.id] = fact
        return fact

    def find_fact(self, fact_id: str) -> Optional[AtomicFact]:
        return self._facts.get(fact_id)

    def list_facts(self, case_id: str) -> List[AtomicFact]:
        with self._lock:
            return [f for f in self._facts.values() if f.case_id == case_id]

    def mark_fact_contradicted(self, fact_id: str, contradicting_fact_id: str) -> None:
        with self._lock:
            fact = self.get_fact(fact_id)
            fact.verification_status = VerificationStatus.CONTRADICTED
            if contradicting_fact_id and contradicting_fact_id not in fact.contradicting_fact_ids:
                fact.contradicting_fact_ids.append(contradicting_fact_id)

    # --- contradictions ---
    def upsert_contradiction(self, contradiction: Contradiction) -> bool:
        if contradiction.is_self_pair:
            raise SelfContradictionPairError(contradiction.fact1_id)
        key = (contradiction.case_id,) + contradiction.pair_key
        with self._lock:
            if key in self._contradictions:
                return False
            self.add_case(contradiction.case_id)
            self._contradictions[key] = contradiction
            return True

    def find_contradiction_by_pair(self, case_id: str, pair: Tuple[str, str]) -> Optional[Contradiction]:
        return self._contradictions.get((case_id,) + tuple(sorted(pair)))

    def find_contradiction(self, contradiction_id: str) -> Optional[Contradiction]:
        with self._lock:
            for contradiction in self._contradictions.values():
                if contradiction.id == contradiction_id:
                    return contradiction
        return None

    def list_contradictions(self, case_id: str) -> List[Contradiction]:
        with self._lock:
            return [c for c in self._contradictions.values() if c.case_id == case_id]

    # --- persons ---
    def add_person(self, profile: PersonProfile) -> PersonProfile:
        with self._lock:
            self.add_case(profile.case_id)
            self._persons[profile.id] = profile
        return profile

    def find_person(self, person_id: str) -> Optional[PersonProfile]:
        return self._persons.get(person_id)

    def list_persons(self, case_id: str) -> List[PersonProfile]:
        with self._lock:
            return [p for p in self._persons.values() if p.case_id == case_id]

    def add_claim(self, claim: PersonClaim) -> None:
        with self._lock:
            self._claims.append(claim)

    def list_claims(self, person_id: str) -> List[PersonClaim]:
        with self._lock:
            return [c for c in self._claims if c.person_id == person_id]

    def add_alibi(self, alibi: PersonAlibi) -> None:
        with self._lock:
            self._alibis.append(alibi)

    def list_alibis(self, person_id: str) -> List[PersonAlibi]:
        with self._lock:
            return [a for a in self._alibis if a.person_id == person_id]

    def add_guilty_knowledge(self, indicator: GuiltyKnowledgeIndicator) -> None:
        with self._lock:
            self._guilty_knowledge.append(indicator)

    def list_guilty_knowledge(self, person_id: str) -> List[GuiltyKnowledgeIndicator]:
        with self._lock:
            return [g for g in self._guilty_knowledge if g.person_id == person_id]

    # --- scores ---
    def save_score(self, case_id: str, score: SuspicionScore) -> None:
        with self._lock:
            self._scores[(case_id, score.person_id)] = score

    def find_score(self, case_id: str, person_id: str) -> Optional[SuspicionScore]:
        return self._scores.get((case_id, person_id))


class PersonKeys:
    """
    Stable keys for the people named on facts, scoped to one case.

    A speaker with a speaker_id keys on that entity. A name that is an alias of a
    canonical entity keys on the entity too, so "Dana" and "Dana Smith" collapse
    when the resolver has linked them. Anything else keys on the cleaned,
    lowercased name. A fact's subject counts as its speaker when it is empty,
    first-person, or names the speaker.
    """

    def __init__(self, repository: Optional[CaseRepository] = None, case_id: Optional[str] = None):
        self.repository = repository
        self.case_id = case_id
        self._cache: Dict[str, str] = {}

    @staticmethod
    def entity_key(entity_id: str) -> str:
        return f"entity:{entity_id}"

    def for_name(self, name: Optional[str]) -> str:
        lowered = (name or "").strip().lower()
        if not lowered:
            return ""
        if lowered not in self._cache:
            self._cache[lowered] = self._lookup(lowered)
        return self._cache[lowered]

    def _lookup(self, lowered: str) -> str:
        cleaned = clean_entity_name(lowered).lower()
        if self.repository is not None and self.case_id:
            for candidate in (lowered, cleaned):
                entity = self.repository.find_entity_by_alias(self.case_id, candidate)
                if entity is not None:
                    return self.entity_key(entity.id)
        return cleaned

    def for_profile(self, profile: PersonProfile) -> str:
        if (profile.entity_id and self.repository is not None
                and self.repository.find_entity(profile.entity_id) is not None):
            return self.entity_key(profile.entity_id)
        return self.for_name(profile.canonical_name)

    def speaker(self, fact: AtomicFact) -> str:
        if fact.source.speaker_id:
            return self.entity_key(fact.source.speaker_id)
        return self.for_name(fact.speaker)

    def refers_to_speaker(self, fact: AtomicFact) -> bool:
        subject = fact.subject.strip().lower()
        if not subject or subject in FIRST_PERSON_SUBJECTS:
            return True
        speaker = self.speaker(fact)
        return bool(speaker) and self.for_name(fact.subject) == speaker

    def subject(self, fact: AtomicFact) -> str:
        """Key of the person (or thing) the fact describes."""
        if self.refers_to_speaker(fact):
            return self.speaker(fact)
        return self.for_name(fact.subject)

    def subject_name(self, fact: AtomicFact) -> str:
        return fact.speaker if self.refers_to_speaker(fact) else fact.subject

    def is_about(self, fact: AtomicFact, person_key: str) -> bool:
        if not person_key:
            return False
        if self.subject(fact) == person_key:
            return True
        return any(self.for_name(p) == person_key for p in fact.mentioned_persons)
