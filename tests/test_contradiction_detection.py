# tests/test_contradiction_detection.py
import json

import pytest

from case_reasoning.agents.contradiction_detection.agent import ContradictionDetectionAgent
from case_reasoning.agents.contradiction_detection.detectors import (
    detect_timeline_contradictions, detect_self_contradictions, detect_witness_conflicts,
    detect_evidence_contradictions, deduplicate, timeline_severity, time_confidence,
)
from case_reasoning.core.exceptions import ContradictionNotFoundError
from case_reasoning.core.state import CaseAnalysisState
from case_reasoning.models.contradiction import Contradiction
from case_reasoning.models.entity import CanonicalEntity
from case_reasoning.models.enums import (
    ContradictionSeverity, ContradictionType, DetectionMethod, FactType, ResolutionStatus,
    TimeCertainty, VerificationStatus,
)
from case_reasoning.models.fact import TimeReference
from case_reasoning.services.repository import InMemoryCaseRepository
from tests.conftest import CASE_ID, FakeOracle, FailingOracle, make_fact


def dana_facts(library_start: str = "2023-06-01T14:20:00"):
    """Dana placed at the cafe by one witness and at the library by another."""
    return [
        make_fact("f-cafe", FactType.LOCATION_CLAIM, "Dana", "Dana was at the cafe", speaker="Witness A",
                  location="Cafe", earliest="2023-06-01T14:00:00", latest="2023-06-01T14:45:00",
                  certainty=TimeCertainty.EXACT, time_text="2pm to 2:45pm"),
        make_fact("f-library", FactType.LOCATION_CLAIM, "Dana", "Dana was at the library", speaker="Witness B",
                  location="Library", earliest=library_start, latest="2023-06-01T15:00:00",
                  certainty=TimeCertainty.APPROXIMATE, time_text="around 2:30pm"),
    ]


def self_contradicting_facts():
    return [
        make_fact("s1", FactType.ACTION_CLAIM, "Mark", "I did go to the store that night", speaker="Mark",
                  date_recorded="2023-06-02T10:00:00"),
        make_fact("s2", FactType.ACTION_CLAIM, "Mark", "I did not go to the store that night", speaker="Mark",
                  date_recorded="2023-06-10T10:00:00"),
    ]


def witness_facts():
    return [
        make_fact("w1", FactType.OBSERVATION, "blue sedan", "The car was parked outside the house",
                  speaker="Alice", time_text="9pm"),
        make_fact("w2", FactType.OBSERVATION, "Blue Sedan", "The car was not parked outside the house",
                  speaker="Bob", time_text="9 PM"),
    ]


def evidence_facts():
    return [
        make_fact("e1", FactType.PHYSICAL_EVIDENCE, "door handle", "Fingerprints found on the door handle"),
        make_fact("e2", FactType.DENIAL, "Mark", "I never touched that door", speaker="Mark"),
    ]


@pytest.fixture
def agent(cd_config, logger, repository):
    return ContradictionDetectionAgent(cd_config, logger, repository)


def _load(repository, facts):
    for fact in facts:
        repository.add_fact(fact)


class TestTimelineDetector:
    """Same person, two locations, overlapping intervals."""

    def test_25_minute_overlap_is_minor(self):
        found = detect_timeline_contradictions(CASE_ID, dana_facts())
        assert len(found) == 1
        contradiction = found[0]
        assert contradiction.contradiction_type == ContradictionType.TIMELINE_IMPOSSIBLE
        assert contradiction.severity == ContradictionSeverity.MINOR
        assert "25 minutes" in contradiction.analysis
        assert contradiction.involved_persons == ["Dana"]

    def test_35_minute_overlap_is_significant(self):
        found = detect_timeline_contradictions(CASE_ID, dana_facts("2023-06-01T14:10:00"))
        assert found[0].severity == ContradictionSeverity.SIGNIFICANT

    def test_severity_thresholds(self):
        assert timeline_severity(30) == ContradictionSeverity.MINOR
        assert timeline_severity(31) == ContradictionSeverity.SIGNIFICANT
        assert timeline_severity(61) == ContradictionSeverity.MAJOR

    def test_confidence_from_certainty(self):
        exact = TimeReference(certainty=TimeCertainty.EXACT)
        approximate = TimeReference(certainty=TimeCertainty.APPROXIMATE)
        unknown = TimeReference()
        assert time_confidence(exact, approximate) == pytest.approx(0.8)
        assert time_confidence(exact, exact) == pytest.approx(0.9)
        assert time_confidence(unknown, unknown) == pytest.approx(0.5)

    def test_same_location_is_not_a_conflict(self):
        facts = dana_facts()
        facts[1].location = "cafe"
        assert detect_timeline_contradictions(CASE_ID, facts) == []

    def test_non_overlapping_intervals(self):
        assert detect_timeline_contradictions(CASE_ID, dana_facts("2023-06-01T14:45:00")) == []

    def test_witness_placing_two_people_is_not_a_conflict(self):
        facts = [
            make_fact("t1", FactType.LOCATION_CLAIM, "Dana", "Dana was at the cafe", speaker="Witness A",
                      location="Cafe", earliest="2023-06-01T14:00:00", latest="2023-06-01T15:00:00"),
            make_fact("t2", FactType.LOCATION_CLAIM, "Eli", "Eli was at the library", speaker="Witness A",
                      location="Library", earliest="2023-06-01T14:00:00", latest="2023-06-01T15:00:00"),
        ]
        assert detect_timeline_contradictions(CASE_ID, facts) == []

    def test_first_person_claim_counts_for_the_speaker(self):
        facts = [
            make_fact("t1", FactType.ALIBI, "I", "I was at home all afternoon", speaker="Mark",
                      location="Home", earliest="2023-06-01T14:00:00", latest="2023-06-01T16:00:00"),
            make_fact("t2", FactType.LOCATION_CLAIM, "Mark", "Mark was at the bar", speaker="Bartender",
                      location="Bar", earliest="2023-06-01T14:30:00", latest="2023-06-01T15:30:00"),
        ]
        found = detect_timeline_contradictions(CASE_ID, facts)
        assert len(found) == 1
        assert found[0].involved_persons == ["Mark"]
        assert found[0].severity == ContradictionSeverity.SIGNIFICANT

    def test_names_are_not_linked_without_the_alias_table(self):
        facts = dana_facts()
        facts[0].subject = "Dana Smith"
        assert detect_timeline_contradictions(CASE_ID, facts) == []


class TestStatementDetectors:
    """Self-contradiction, witness conflict and evidence vs testimony."""

    def test_self_contradiction(self):
        found = detect_self_contradictions(CASE_ID, self_contradicting_facts())
        assert len(found) == 1
        assert found[0].contradiction_type == ContradictionType.SELF_CONTRADICTION
        assert found[0].severity == ContradictionSeverity.MAJOR
        assert found[0].confidence_score == 0.85

    def test_story_evolution_on_location_change(self):
        facts = [
            make_fact("l1", FactType.LOCATION_CLAIM, "Mark", "I was home", speaker="Mark", location="Home",
                      date_recorded="2023-06-02"),
            make_fact("l2", FactType.LOCATION_CLAIM, "Mark", "I was at work", speaker="Mark", location="Work",
                      date_recorded="2023-06-05"),
        ]
        found = detect_self_contradictions(CASE_ID, facts)
        assert found[0].contradiction_type == ContradictionType.STORY_EVOLUTION
        assert found[0].severity == ContradictionSeverity.SIGNIFICANT

    def test_negated_word_inside_longer_word_is_ignored(self):
        facts = [
            make_fact("n1", FactType.ACTION_CLAIM, "Mark", "I know nothing about it", speaker="Mark",
                      date_recorded="2023-06-02"),
            make_fact("n2", FactType.ACTION_CLAIM, "Mark", "Yes, I know nothing", speaker="Mark",
                      date_recorded="2023-06-03"),
        ]
        assert detect_self_contradictions(CASE_ID, facts) == []

    def test_witness_conflict(self):
        found = detect_witness_conflicts(CASE_ID, witness_facts())
        assert len(found) == 1
        assert found[0].contradiction_type == ContradictionType.WITNESS_CONFLICT
        assert found[0].severity == ContradictionSeverity.MAJOR
        assert sorted(found[0].involved_persons) == ["Alice", "Bob"]

    def test_witness_conflict_checks_both_orders(self):
        facts = list(reversed(witness_facts()))
        assert len(detect_witness_conflicts(CASE_ID, facts)) == 1

    def test_same_speaker_is_not_a_witness_conflict(self):
        facts = witness_facts()
        facts[1].source.speaker_name = "alice"
        assert detect_witness_conflicts(CASE_ID, facts) == []

    def test_only_observations_are_compared_across_witnesses(self):
        facts = witness_facts()
        for fact in facts:
            fact.fact_type = FactType.ACTION_CLAIM
        assert detect_witness_conflicts(CASE_ID, facts) == []

    def test_speaker_id_links_differently_written_names(self):
        facts = self_contradicting_facts()
        facts[1].source.speaker_name = "Mark Hale"
        assert detect_self_contradictions(CASE_ID, facts) == []

        for fact in facts:
            fact.source.speaker_id = "ent-mark"
        found = detect_self_contradictions(CASE_ID, facts)
        assert len(found) == 1
        assert found[0].contradiction_type == ContradictionType.SELF_CONTRADICTION

    def test_evidence_contradiction(self):
        found = detect_evidence_contradictions(CASE_ID, evidence_facts())
        assert len(found) == 1
        assert found[0].severity == ContradictionSeverity.CRITICAL
        assert found[0].confidence_score == 0.9
        assert found[0].involved_persons == ["Mark"]

    def test_deduplicate_keeps_first_per_pair(self):
        first = detect_evidence_contradictions(CASE_ID, evidence_facts())[0]
        second = detect_evidence_contradictions(CASE_ID, list(reversed(evidence_facts())), confidence=0.5)[0]
        unique = deduplicate([first, second])
        assert unique == [first]

    def test_deduplicate_keeps_most_severe_per_pair(self):
        critical = detect_evidence_contradictions(CASE_ID, evidence_facts())[0]
        minor = Contradiction(case_id=CASE_ID, fact1_id="e2", fact2_id="e1",
                              contradiction_type=ContradictionType.TIMELINE_IMPOSSIBLE,
                              severity=ContradictionSeverity.MINOR, description="overlap")
        assert deduplicate([minor, critical]) == [critical]
        assert deduplicate([critical, minor]) == [critical]


class TestDetectionAgent:
    """Persistence, idempotence and reviewer decisions."""

    def test_detect_all_kinds(self, agent, repository):
        _load(repository, dana_facts() + self_contradicting_facts() + witness_facts() + evidence_facts())
        result = agent.detect(CASE_ID)
        assert result.total_contradictions_found == 4
        assert len(result.new_contradictions) == 4
        assert result.by_severity["critical"] == 1
        assert result.by_type["timeline_impossible"] == 1
        assert not result.oracle_used

    def test_detect_is_idempotent(self, agent, repository):
        _load(repository, dana_facts() + evidence_facts())
        first = agent.detect(CASE_ID)
        second = agent.detect(CASE_ID)
        assert len(first.new_contradictions) == 2
        assert second.new_contradictions == []
        assert second.total_contradictions_found == 2
        assert len(repository.list_contradictions(CASE_ID)) == 2

    def test_involved_facts_are_marked_contradicted(self, agent, repository):
        _load(repository, evidence_facts())
        agent.detect(CASE_ID)
        evidence, denial = repository.get_fact("e1"), repository.get_fact("e2")
        assert evidence.verification_status == VerificationStatus.CONTRADICTED
        assert denial.contradicting_fact_ids == ["e1"]

    def test_aliases_of_one_entity_are_compared(self, agent, repository):
        dana = CanonicalEntity(case_id=CASE_ID, canonical_name="Dana Smith")
        dana.add_alias("Dana")
        repository.add_entity(dana)
        _load(repository, [
            make_fact("a1", FactType.LOCATION_CLAIM, "Dana Smith", "Dana Smith was at the cafe",
                      speaker="Witness A", location="Cafe",
                      earliest="2023-06-01T14:00:00", latest="2023-06-01T15:00:00"),
            make_fact("a2", FactType.LOCATION_CLAIM, "Dana", "Dana was at the library",
                      speaker="Witness B", location="Library",
                      earliest="2023-06-01T14:00:00", latest="2023-06-01T15:00:00"),
        ])
        result = agent.detect(CASE_ID)
        assert result.by_type["timeline_impossible"] == 1
        assert result.involved_persons == ["Dana Smith"]

    def test_evidence_contradiction_is_never_downgraded(self, agent, repository):
        _load(repository, [
            make_fact("x1", FactType.PHYSICAL_EVIDENCE, "Mark", "Mark's fingerprint found at the cafe",
                      location="Cafe", earliest="2023-06-01T14:00:00", latest="2023-06-01T14:20:00"),
            make_fact("x2", FactType.DENIAL, "Mark", "I never went to the cafe", speaker="Mark",
                      location="Home", earliest="2023-06-01T14:00:00", latest="2023-06-01T15:00:00"),
        ])
        result = agent.detect(CASE_ID)
        stored = repository.list_contradictions(CASE_ID)
        assert [(c.contradiction_type, c.severity) for c in stored] == [
            (ContradictionType.EVIDENCE_CONTRADICTION, ContradictionSeverity.CRITICAL)]
        assert result.by_type["timeline_impossible"] == 0

    def test_reviewer_status_survives_rerun(self, agent, repository):
        _load(repository, evidence_facts())
        agent.detect(CASE_ID)
        stored = agent.get_contradictions_for_case(CASE_ID)[0]
        agent.update_resolution(stored.id, "explained", notes="gloves", resolved_by="det. lee")
        agent.detect(CASE_ID)
        again = repository.get_contradiction(stored.id)
        assert again.resolution_status == ResolutionStatus.EXPLAINED
        assert again.resolved_by == "det. lee"
        assert again.resolved_at is not None
        assert agent.get_unresolved(CASE_ID) == []

    def test_update_unknown_contradiction(self, agent):
        with pytest.raises(ContradictionNotFoundError):
            agent.update_resolution("missing", ResolutionStatus.DISMISSED)

    def test_queries(self, agent, repository):
        _load(repository, dana_facts() + evidence_facts())
        agent.detect(CASE_ID)
        ordered = agent.get_contradictions_for_case(CASE_ID)
        assert ordered[0].severity == ContradictionSeverity.CRITICAL
        assert len(agent.get_contradictions_for_person(CASE_ID, "DANA")) == 1
        assert [c.severity for c in agent.get_critical(CASE_ID)] == [ContradictionSeverity.CRITICAL]

    def test_stage_flags_critical_contradictions(self, agent, repository):
        _load(repository, evidence_facts())
        state = agent.run(CaseAnalysisState(case_id=CASE_ID))
        assert state.contradiction_summary["total_contradictions_found"] == 1
        assert state.human_review_required


class TestOraclePass:
    """Oracle suggestions are validated and merged with the rule-based set."""

    def test_oracle_contradictions_are_added(self, cd_oracle_config, logger, repository):
        facts = [
            make_fact("o1", FactType.ACTION_CLAIM, "Kim", "Kim left at 8", speaker="Kim"),
            make_fact("o2", FactType.OBSERVATION, "Kim", "Kim's car was there at 11", speaker="Neighbor"),
        ]
        _load(repository, facts)
        reply = json.dumps({"contradictions": [
            {"fact1Id": "o1", "fact2Id": "o2", "type": "statement_conflict", "severity": "significant",
             "description": "departure time disputed", "confidence": 0.6},
            {"fact1Id": "o1", "fact2Id": "ghost", "type": "statement_conflict", "severity": "major"},
            {"fact1Id": "o1", "fact2Id": "o1", "type": "statement_conflict", "severity": "major"},
        ]})
        agent = ContradictionDetectionAgent(cd_oracle_config, logger, repository, oracle=FakeOracle(reply))
        result = agent.detect(CASE_ID)
        assert result.oracle_used
        assert result.total_contradictions_found == 1
        stored = result.new_contradictions[0]
        assert stored.detection_method == DetectionMethod.AI_ENHANCED
        assert stored.confidence_score == 0.6

    def test_rule_based_pair_wins_over_oracle_duplicate(self, cd_oracle_config, logger, repository):
        _load(repository, evidence_facts())
        reply = json.dumps({"contradictions": [
            {"fact1Id": "e2", "fact2Id": "e1", "type": "statement_conflict", "severity": "minor"}]})
        agent = ContradictionDetectionAgent(cd_oracle_config, logger, repository, oracle=FakeOracle(reply))
        result = agent.detect(CASE_ID)
        assert result.total_contradictions_found == 1
        assert result.new_contradictions[0].detection_method == DetectionMethod.AUTOMATIC

    @pytest.mark.parametrize("oracle", [FailingOracle(), FakeOracle("no idea, sorry")])
    def test_bad_oracle_matches_rule_only(self, cd_oracle_config, cd_config, logger, oracle):
        counts = []
        for config, used in ((cd_oracle_config, oracle), (cd_config, None)):
            repo = InMemoryCaseRepository()
            _load(repo, dana_facts() + evidence_facts())
            result = ContradictionDetectionAgent(config, logger, repo, oracle=used).detect(CASE_ID)
            counts.append((result.total_contradictions_found, result.oracle_used))
        assert counts == [(2, False), (2, False)]
