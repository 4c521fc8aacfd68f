# tests/test_repository.py
import pytest

from case_reasoning.core.exceptions import (
    CaseNotFoundError, ContradictionNotFoundError, DuplicateContradictionError, EntityNotFoundError,
    ErrorSeverity, FactNotFoundError, PersonNotFoundError, SelfContradictionPairError,
)
from case_reasoning.models.contradiction import Contradiction
from case_reasoning.models.entity import CanonicalEntity, EntityMention
from case_reasoning.models.enums import (
    ContradictionSeverity, ContradictionType, EntityType, ResolutionStatus,
)
from tests.conftest import CASE_ID


def contradiction(fact1_id: str, fact2_id: str, severity=ContradictionSeverity.MINOR) -> Contradiction:
    return Contradiction(case_id=CASE_ID, fact1_id=fact1_id, fact2_id=fact2_id,
                         contradiction_type=ContradictionType.STATEMENT_CONFLICT,
                         severity=severity, description="conflict")


class TestContradictionStore:
    """Pair-keyed, insert-or-ignore storage."""

    def test_pair_is_stored_sorted(self):
        stored = contradiction("f9", "f2")
        assert stored.pair_key == ("f2", "f9")
        assert stored.id == f"{CASE_ID}:f2:f9"

    def test_upsert_ignores_existing_pair(self, repository):
        first = contradiction("f1", "f2")
        assert repository.upsert_contradiction(first)
        first.resolution_status = ResolutionStatus.CONFIRMED_LIE

        assert not repository.upsert_contradiction(contradiction("f2", "f1", ContradictionSeverity.MAJOR))
        kept = repository.find_contradiction_by_pair(CASE_ID, ("f2", "f1"))
        assert kept is first
        assert kept.severity == ContradictionSeverity.MINOR
        assert kept.resolution_status == ResolutionStatus.CONFIRMED_LIE
        assert len(repository.list_contradictions(CASE_ID)) == 1

    def test_self_pair_is_rejected(self, repository):
        with pytest.raises(SelfContradictionPairError):
            repository.upsert_contradiction(contradiction("f1", "f1"))
        assert repository.list_contradictions(CASE_ID) == []

    def test_strict_insert(self, repository):
        repository.insert_contradiction(contradiction("f1", "f2"))
        with pytest.raises(DuplicateContradictionError):
            repository.insert_contradiction(contradiction("f1", "f2"))

    def test_same_pair_in_another_case_is_separate(self, repository):
        repository.upsert_contradiction(contradiction("f1", "f2"))
        other = Contradiction(case_id="case-2", fact1_id="f1", fact2_id="f2",
                              contradiction_type=ContradictionType.STATEMENT_CONFLICT,
                              severity=ContradictionSeverity.MINOR, description="conflict")
        assert repository.upsert_contradiction(other)


class TestLookups:
    """Missing records raise typed not-found errors."""

    def test_require_case(self, repository):
        repository.require_case(CASE_ID)
        with pytest.raises(CaseNotFoundError) as exc_info:
            repository.require_case("missing")
        assert exc_info.value.severity == ErrorSeverity.HIGH

    @pytest.mark.parametrize("getter,error", [
        ("get_entity", EntityNotFoundError),
        ("get_fact", FactNotFoundError),
        ("get_person", PersonNotFoundError),
        ("get_contradiction", ContradictionNotFoundError),
        ("delete_entity", EntityNotFoundError),
    ])
    def test_not_found(self, repository, getter, error):
        with pytest.raises(error):
            getattr(repository, getter)("nope")


class TestEntities:
    """Alias lookup, listing and mention relinking."""

    def test_alias_lookup_is_case_scoped(self, repository):
        entity = repository.add_entity(CanonicalEntity(case_id=CASE_ID, canonical_name="Rosa Diaz"))
        repository.add_entity(CanonicalEntity(case_id="case-2", canonical_name="Rosa Diaz"))
        assert repository.find_entity_by_alias(CASE_ID, "  ROSA DIAZ ") is entity
        assert repository.find_entity_by_alias(CASE_ID, "Rosa") is None

    def test_list_entities_by_type(self, repository):
        repository.add_entity(CanonicalEntity(case_id=CASE_ID, canonical_name="Rosa Diaz"))
        repository.add_entity(CanonicalEntity(case_id=CASE_ID, canonical_name="Pier 9",
                                              entity_type=EntityType.LOCATION))
        assert [e.canonical_name for e in repository.list_entities(CASE_ID, EntityType.LOCATION)] == ["Pier 9"]
        assert len(repository.list_entities(CASE_ID)) == 2

    def test_relink_mentions(self, repository):
        repository.add_mention(EntityMention(entity_id="old", document_id="doc-1", mention_text="Rosa"))
        repository.add_mention(EntityMention(entity_id="old", document_id="doc-1", mention_text="R. Diaz"))
        repository.add_mention(EntityMention(entity_id="other", document_id="doc-1", mention_text="Jake"))
        assert repository.relink_mentions("old", "new") == 2
        assert [m.mention_text for m in repository.list_mentions("new")] == ["Rosa", "R. Diaz"]
        assert repository.list_mentions("old") == []

    def test_entity_lock_accepts_duplicates(self, repository):
        with repository.entity_lock("b", "a", "a"):
            pass
        with repository.entity_lock("a"):
            pass
