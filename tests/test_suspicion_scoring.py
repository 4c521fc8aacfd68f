# tests/test_suspicion_scoring.py
import json

import pytest

from case_reasoning.agents.suspicion_scoring import components
from case_reasoning.agents.suspicion_scoring.agent import SuspicionScoringAgent
from case_reasoning.core.exceptions import PersonNotFoundError, EngineConfigurationError
from case_reasoning.core.state import CaseAnalysisState
from case_reasoning.models.entity import CanonicalEntity
from case_reasoning.models.enums import (
    AlibiStatus, DataQuality, DnaStatus, FactType, PriorityLevel, VerificationStatus,
)
from case_reasoning.models.person import PersonProfile, PersonAlibi, ScoringContext
from tests.conftest import CASE_ID, FakeOracle, FailingOracle, make_fact

ASSAULT = ScoringContext(case_id=CASE_ID, crime_type="assault")


def add_alex(repository, **profile_overrides) -> PersonProfile:
    """
    A friend of the victim with an impossible, self-conflicting alibi and four facts:
    opportunity 13, means 9, motive 11, behavior 7 under an assault context.
    """
    profile = PersonProfile(case_id=CASE_ID, canonical_name="Alex Reed", relationship_to_victim="friend",
                            occupation="locksmith", **profile_overrides)
    repository.add_person(profile)
    repository.add_alibi(PersonAlibi(person_id=profile.id, location="Gym",
                                     verification_status=AlibiStatus.IMPOSSIBLE,
                                     conflicting_alibi_ids=["other-alibi"]))
    contradicted = VerificationStatus.CONTRADICTED
    for fact in (
        make_fact("a1", FactType.ACTION_CLAIM, "Alex Reed", "Is a strong former boxer",
                  verification_status=contradicted),
        make_fact("a2", FactType.KNOWLEDGE_CLAIM, "Alex Reed", "Described the lock mechanism in detail",
                  is_suspicious=True),
        make_fact("a3", FactType.ACTION_CLAIM, "Alex Reed", "Stood to inherit the house",
                  verification_status=contradicted),
        make_fact("a4", FactType.PRIOR_INCIDENT, "Alex Reed", "Had a loud argument with the victim",
                  verification_status=contradicted),
    ):
        repository.add_fact(fact)
    return profile


@pytest.fixture
def agent(ss_config, logger, repository):
    return SuspicionScoringAgent(ss_config, logger, repository)


class TestComponents:
    """Clamping, priority and data-quality rules."""

    def test_clamping(self):
        assert components.clamp_component(31) == 25
        assert components.clamp_component(-4) == 0
        assert components.clamp_total(130) == 100
        assert components.clamp_total(-20) == 0

    def test_priority_levels(self):
        assert components.priority_level(10, 0, dna_match=True) == PriorityLevel.CRITICAL
        assert components.priority_level(70, 0, dna_match=False) == PriorityLevel.CRITICAL
        assert components.priority_level(10, 3, dna_match=False) == PriorityLevel.CRITICAL
        assert components.priority_level(50, 0, dna_match=False) == PriorityLevel.HIGH
        assert components.priority_level(10, 2, dna_match=False) == PriorityLevel.HIGH
        assert components.priority_level(30, 0, dna_match=False) == PriorityLevel.MEDIUM
        assert components.priority_level(29, 1, dna_match=False) == PriorityLevel.LOW

    def test_data_quality_tiers(self):
        assert components.data_quality(50) == (DataQuality.COMPREHENSIVE, 0.9)
        assert components.data_quality(20) == (DataQuality.ADEQUATE, 0.7)
        assert components.data_quality(5) == (DataQuality.PARTIAL, 0.5)
        assert components.data_quality(0) == (DataQuality.INSUFFICIENT, 0.3)

    def test_confidence_bonus_is_capped(self):
        assert components.confidence(0.9, 50, 50) == pytest.approx(0.99)
        assert components.confidence(0.3, 2, 3) == pytest.approx(0.35)


class TestScore:
    """Deterministic per-person scores."""

    def test_rejects_foreign_config(self, er_config, logger, repository):
        with pytest.raises(EngineConfigurationError):
            SuspicionScoringAgent(er_config, logger, repository)

    def test_component_breakdown(self, agent, repository):
        alex = add_alex(repository)
        score = agent.score(CASE_ID, alex.id, ASSAULT)
        assert (score.opportunity_score, score.means_score, score.motive_score, score.behavior_score) == (
            13, 9, 11, 7)
        assert score.base_score == 40
        assert score.evidence_score == 0
        assert score.total_score == 40
        assert score.dna_status == DnaStatus.NOT_SUBMITTED
        assert score.priority_level == PriorityLevel.MEDIUM
        assert score.data_quality == DataQuality.PARTIAL

    def test_dna_exclusion_lowers_total(self, agent, repository):
        alex = add_alex(repository, dna_submitted=True, dna_excluded=True)
        score = agent.score(CASE_ID, alex.id, ASSAULT)
        assert score.evidence_score == -30
        assert score.total_score == 10
        assert score.priority_level == PriorityLevel.LOW
        assert score.critical_flags == []
        assert score.investigative_recommendation.startswith("DNA excluded")

    def test_dna_match_forces_critical(self, agent, repository):
        alex = add_alex(repository, dna_submitted=True, dna_matched=True)
        score = agent.score(CASE_ID, alex.id, ASSAULT)
        assert score.total_score == 90
        assert score.priority_level == PriorityLevel.CRITICAL
        assert "DNA MATCH at crime scene" in score.critical_flags

    def test_dna_match_alone(self, agent, repository):
        profile = repository.add_person(PersonProfile(case_id=CASE_ID, canonical_name="Blair Stone",
                                                      dna_submitted=True, dna_matched=True))
        score = agent.score(CASE_ID, profile.id)
        assert score.base_score == 0
        assert score.total_score == 50
        assert score.priority_level == PriorityLevel.CRITICAL
        assert score.investigative_recommendation.startswith("PRIORITY: DNA match")

    def test_without_context_physical_capability_is_ignored(self, agent, repository):
        alex = add_alex(repository)
        assert agent.score(CASE_ID, alex.id).means_score == 4

    def test_key_findings_mention_contradictions(self, agent, repository):
        alex = add_alex(repository)
        score = agent.score(CASE_ID, alex.id, ASSAULT)
        assert "3 statement contradictions detected" in score.key_findings
        assert any(f.startswith("Several statement contradictions") for f in score.key_findings)

    def test_score_is_saved_and_linked_entity_updated(self, agent, repository):
        entity = repository.add_entity(CanonicalEntity(case_id=CASE_ID, canonical_name="Alex Reed"))
        alex = add_alex(repository, entity_id=entity.id, dna_submitted=True, dna_excluded=True)
        score = agent.score(CASE_ID, alex.id, ASSAULT)
        assert repository.find_score(CASE_ID, alex.id) is score
        assert repository.get_entity(entity.id).suspicion_score == 10

    def test_facts_are_matched_through_the_alias_table(self, agent, repository):
        entity = CanonicalEntity(case_id=CASE_ID, canonical_name="John Smith")
        entity.add_alias("J. Smith")
        repository.add_entity(entity)
        john = repository.add_person(PersonProfile(case_id=CASE_ID, canonical_name="John Smith",
                                                   entity_id=entity.id))
        repository.add_fact(make_fact("j1", FactType.POSSESSION, "J. Smith", "Kept a knife in his truck"))
        repository.add_fact(make_fact("j2", FactType.POSSESSION, "Joanna Smithers", "Owns a gun"))

        assert [f.id for f in agent.gather(CASE_ID, john.id).facts] == ["j1"]
        assert agent.score(CASE_ID, john.id).means_score == 8

    def test_short_names_do_not_match_inside_longer_ones(self, agent, repository):
        ann = repository.add_person(PersonProfile(case_id=CASE_ID, canonical_name="Ann"))
        repository.add_fact(make_fact("k1", FactType.POSSESSION, "Joanna", "Owns a gun"))
        repository.add_fact(make_fact("k2", FactType.POSSESSION, "I", "I own a knife", speaker="Ann"))
        repository.add_fact(make_fact("k3", FactType.OBSERVATION, "Joanna", "Joanna left early", speaker="Ann"))
        assert [f.id for f in agent.gather(CASE_ID, ann.id).facts] == ["k2"]

    def test_person_from_another_case(self, agent, repository):
        stranger = repository.add_person(PersonProfile(case_id="case-2", canonical_name="Sam Other"))
        with pytest.raises(PersonNotFoundError):
            agent.score(CASE_ID, stranger.id)

    def test_rescoring_is_stable(self, agent, repository):
        alex = add_alex(repository)
        first = agent.score(CASE_ID, alex.id, ASSAULT)
        second = agent.score(CASE_ID, alex.id, ASSAULT)
        assert first.total_score == second.total_score
        assert [f.factor for f in first.factors] == [f.factor for f in second.factors]


class TestOracleRefinement:
    """The oracle may move the four components, never the evidence modifier."""

    REPLY = json.dumps({
        "adjustedScores": {"opportunity": 20, "means": 30, "motive": 11, "behavior": 7},
        "additionalFactors": [
            {"factor": "Debt to the victim", "weight": 4, "category": "motive", "evidence": ["bank records"]},
            {"factor": "Blood on jacket", "weight": 40, "category": "evidence"},
        ],
        "missedPatterns": ["Visited the house twice that week"],
        "criticalNextSteps": ["Check gym entry logs"],
        "overallAssessment": "Likely involved",
        "confidenceInScoring": 0.7,
    })

    def test_refinement_adjusts_components(self, ss_oracle_config, logger, repository):
        alex = add_alex(repository, dna_submitted=True, dna_excluded=True)
        agent = SuspicionScoringAgent(ss_oracle_config, logger, repository, oracle=FakeOracle(self.REPLY))
        base = agent.score(CASE_ID, alex.id, ASSAULT)
        refined = agent.refine_with_oracle(CASE_ID, base)

        assert refined.refined_by_oracle
        assert refined.opportunity_score == 20
        assert refined.means_score == 25
        assert refined.evidence_score == -30
        assert refined.total_score == 33
        assert refined.priority_level == PriorityLevel.MEDIUM
        assert [f.factor for f in refined.factors][-1] == "Debt to the victim"
        assert "Blood on jacket" not in [f.factor for f in refined.factors]
        assert refined.key_findings[-1] == "Visited the house twice that week"
        assert refined.oracle_notes["critical_next_steps"] == ["Check gym entry logs"]
        assert refined.critical_flags == base.critical_flags
        assert repository.find_score(CASE_ID, alex.id) is refined

    def test_prompt_carries_current_scores(self, ss_oracle_config, logger, repository):
        alex = add_alex(repository)
        oracle = FakeOracle(self.REPLY)
        agent = SuspicionScoringAgent(ss_oracle_config, logger, repository, oracle=oracle)
        agent.refine_with_oracle(CASE_ID, agent.score(CASE_ID, alex.id, ASSAULT))
        assert "SUSPECT: Alex Reed" in oracle.prompts[0]
        assert "- TOTAL: 40" in oracle.prompts[0]

    @pytest.mark.parametrize("oracle", [FailingOracle(), FakeOracle("Looks about right to me.")])
    def test_unusable_oracle_keeps_score(self, ss_oracle_config, logger, repository, oracle):
        alex = add_alex(repository)
        agent = SuspicionScoringAgent(ss_oracle_config, logger, repository, oracle=oracle)
        base = agent.score(CASE_ID, alex.id, ASSAULT)
        assert agent.refine_with_oracle(CASE_ID, base) is base
        assert agent.metrics.oracle_failures == 1

    def test_disabled_oracle_is_a_no_op(self, agent, repository):
        alex = add_alex(repository)
        base = agent.score(CASE_ID, alex.id, ASSAULT)
        assert agent.refine_with_oracle(CASE_ID, base) is base


class TestRanking:
    """Case-wide ranking and the pipeline stage."""

    @pytest.fixture
    def populated(self, repository):
        alex = add_alex(repository, dna_submitted=True, dna_excluded=True)
        blair = repository.add_person(PersonProfile(case_id=CASE_ID, canonical_name="Blair Stone",
                                                    dna_submitted=True, dna_matched=True))
        casey = repository.add_person(PersonProfile(case_id=CASE_ID, canonical_name="Casey Lane"))
        return alex, blair, casey

    def test_rank_orders_by_total(self, agent, populated):
        alex, blair, casey = populated
        rankings = agent.rank(CASE_ID, ASSAULT)
        assert [s.person_id for s in rankings.ranked_suspects] == [blair.id, alex.id, casey.id]
        assert [s.ranking for s in rankings.ranked_suspects] == [1, 2, 3]
        assert rankings.top_suspect.person_id == blair.id
        assert rankings.total_persons_analyzed == 3
        assert rankings.average_score == pytest.approx(20.0)

    def test_equal_totals_keep_insertion_order(self, agent, repository):
        first = repository.add_person(PersonProfile(case_id=CASE_ID, canonical_name="First Person"))
        second = repository.add_person(PersonProfile(case_id=CASE_ID, canonical_name="Second Person"))
        rankings = agent.rank(CASE_ID)
        assert [s.person_id for s in rankings.ranked_suspects] == [first.id, second.id]

    def test_failed_person_is_left_out(self, agent, populated, monkeypatch):
        alex, blair, casey = populated
        gather = agent.gather

        def flaky_gather(case_id, person_id):
            if person_id == casey.id:
                raise PersonNotFoundError(person_id)
            return gather(case_id, person_id)

        monkeypatch.setattr(agent, "gather", flaky_gather)
        rankings = agent.rank(CASE_ID, ASSAULT)
        assert [s.person_id for s in rankings.ranked_suspects] == [blair.id, alex.id]
        assert agent.metrics.items_failed == 1

    def test_empty_case(self, agent):
        rankings = agent.rank(CASE_ID)
        assert rankings.ranked_suspects == []
        assert rankings.top_suspect is None
        assert rankings.average_score == 0.0

    def test_rank_applies_refinement_when_enabled(self, ss_oracle_config, logger, repository, populated):
        agent = SuspicionScoringAgent(ss_oracle_config, logger, repository,
                                      oracle=FakeOracle(TestOracleRefinement.REPLY))
        rankings = agent.rank(CASE_ID, ASSAULT)
        assert all(s.refined_by_oracle for s in rankings.ranked_suspects)

    def test_stage_flags_critical_persons(self, agent, populated):
        state = CaseAnalysisState(case_id=CASE_ID, scoring_context={"crime_type": "assault"})
        state = agent.run(state)
        assert state.rankings["total_persons_analyzed"] == 3
        assert state.human_review_required
        assert any("Blair Stone" in reason for reason in state.review_reasons)
        metrics = agent.get_metrics()
        assert metrics.successful_runs == 1
        assert metrics.items_failed == 0
