# case_reasoning/agents/suspicion_scoring/agent.py
import dataclasses
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional

from case_reasoning.agents.suspicion_scoring import components
from case_reasoning.agents.suspicion_scoring.components import PersonCaseData
from case_reasoning.agents.suspicion_scoring.prompts import build_refinement_prompt
from case_reasoning.config.constants import COMPONENT_MAX
from case_reasoning.config.settings import SuspicionScoringConfig
from case_reasoning.core.base_agent import BaseOracleAgent
from case_reasoning.core.exceptions import (
    BaseCaseReasoningException, EngineConfigurationError, PersonNotFoundError,
    OracleResponseError, ErrorSeverity
)
from case_reasoning.core.state import CaseAnalysisState
from case_reasoning.models.enums import VerificationStatus, PriorityLevel
from case_reasoning.models.oracle import parse_oracle_refinement
from case_reasoning.models.person import ScoringContext
from case_reasoning.models.scoring import SuspicionScore, CaseRankings
from case_reasoning.services.oracle import InferenceOracle
from case_reasoning.services.repository import CaseRepository, PersonKeys


class SuspicionScoringAgent(BaseOracleAgent):
    """
    Scores every person in a case on opportunity, means, motive and behavior
    (0-25 each) plus an evidence modifier, and ranks them.

    Scores are always rebuilt from the repository's records; the optional
    oracle review can adjust the four components but never the evidence part.
    """

    def __init__(self, config: SuspicionScoringConfig, logger: logging.Logger,
                 repository: CaseRepository, oracle: Optional[InferenceOracle] = None):
        if not isinstance(config, SuspicionScoringConfig):
            raise EngineConfigurationError(
                f"Config must be an instance of SuspicionScoringConfig, got {type(config)}.",
                config_key="suspicion_scoring_config_type",
                severity=ErrorSeverity.CRITICAL
            )
        super().__init__(config, logger, oracle=oracle)
        self.ss_config: SuspicionScoringConfig = config
        self.repository = repository

    def gather(self, case_id: str, person_id: str) -> PersonCaseData:
        profile = self.repository.get_person(person_id)
        if profile.case_id != case_id:
            raise PersonNotFoundError(person_id, context={"case_id": case_id})

        keys = PersonKeys(self.repository, case_id)
        person_key = keys.for_profile(profile)
        facts = [f for f in self.repository.list_facts(case_id) if keys.is_about(f, person_key)]
        return PersonCaseData(
            profile=profile,
            claims=self.repository.list_claims(person_id),
            alibis=self.repository.list_alibis(person_id),
            facts=facts,
            contradicted_facts=[f for f in facts if f.verification_status == VerificationStatus.CONTRADICTED],
            guilty_knowledge=self.repository.list_guilty_knowledge(person_id),
        )

    def score(self, case_id: str, person_id: str,
              context: Optional[ScoringContext] = None) -> SuspicionScore:
        """Deterministic score for one person. Saved to the repository and the linked entity."""
        self.repository.require_case(case_id)
        data = self.gather(case_id, person_id)

        opportunity = components.opportunity_score(data, context)
        means = components.means_score(data, context)
        motive = components.motive_score(data, context)
        behavior = components.behavior_score(data)
        evidence = components.evidence_score(data)

        factors = opportunity.factors + means.factors + motive.factors + behavior.factors + evidence.factors
        component_scores = [components.clamp_component(c.score) for c in (opportunity, means, motive, behavior)]
        total = components.clamp_total(sum(component_scores) + evidence.score)
        flags = components.critical_flags(factors)
        quality, base_confidence = components.data_quality(data.data_points)

        score = SuspicionScore(
            person_id=data.profile.id,
            person_name=data.profile.canonical_name,
            role=data.profile.role.value,
            total_score=total,
            opportunity_score=component_scores[0],
            means_score=component_scores[1],
            motive_score=component_scores[2],
            behavior_score=component_scores[3],
            evidence_score=evidence.score,
            dna_status=data.profile.dna_status,
            priority_level=components.priority_level(total, len(flags), components.has_dna_match(factors)),
            data_quality=quality,
            confidence=components.confidence(base_confidence, len(factors), len(data.facts)),
            factors=factors,
            key_findings=components.key_findings(factors, data),
            critical_flags=flags,
            investigative_recommendation=components.recommendation(total, factors),
        )
        self._save(case_id, data, score)
        self.logger.debug(
            f"[{self.agent_name}] {score.person_name}: total {score.total_score:g}, "
            f"priority {score.priority_level.value}")
        return score

    def _save(self, case_id: str, data: PersonCaseData, score: SuspicionScore) -> None:
        self.repository.save_score(case_id, score)
        entity_id = data.profile.entity_id
        if entity_id and self.repository.find_entity(entity_id) is not None:
            with self.repository.entity_lock(entity_id):
                self.repository.get_entity(entity_id).suspicion_score = score.total_score

    def refine_with_oracle(self, case_id: str, score: SuspicionScore) -> SuspicionScore:
        """
        Let the oracle review a deterministic score. Returns the input unchanged when
        the oracle is off, unreachable, or answers with something unusable.
        """
        if not self.oracle_available:
            return score

        data = self.gather(case_id, score.person_id)
        prompt = build_refinement_prompt(score, data.claims, data.guilty_knowledge,
                                         max_claims=self.ss_config.max_claims_in_prompt)
        reply = self._consult_oracle(prompt, purpose=f"score review of {score.person_name}")
        if reply is None:
            return score
        try:
            review = parse_oracle_refinement(reply, COMPONENT_MAX)
        except OracleResponseError as e:
            self._record_oracle_rejection(f"score review of {score.person_name}", e)
            return score

        adjusted = review.adjusted_scores
        opportunity = adjusted.get("opportunity", score.opportunity_score)
        means = adjusted.get("means", score.means_score)
        motive = adjusted.get("motive", score.motive_score)
        behavior = adjusted.get("behavior", score.behavior_score)
        total = components.clamp_total(opportunity + means + motive + behavior + score.evidence_score)

        # flags and the DNA override only ever come from the deterministic factors
        flags = components.critical_flags(score.factors)
        refined = dataclasses.replace(
            score,
            opportunity_score=opportunity,
            means_score=means,
            motive_score=motive,
            behavior_score=behavior,
            total_score=total,
            priority_level=components.priority_level(total, len(flags), components.has_dna_match(score.factors)),
            factors=score.factors + review.additional_factors,
            key_findings=score.key_findings + review.missed_patterns,
            critical_flags=flags,
            refined_by_oracle=True,
            oracle_notes={
                "overall_assessment": review.overall_assessment,
                "critical_next_steps": review.critical_next_steps,
                "confidence_in_scoring": review.confidence_in_scoring,
            },
        )
        self._save(case_id, data, refined)
        self.logger.info(
            f"[{self.agent_name}] Oracle review of {score.person_name}: "
            f"total {score.total_score:g} -> {refined.total_score:g}")
        return refined

    def _score_for_ranking(self, case_id: str, person_id: str,
                           context: Optional[ScoringContext]) -> SuspicionScore:
        score = self.score(case_id, person_id, context)
        if self.ss_config.enable_oracle_refinement:
            score = self.refine_with_oracle(case_id, score)
        return score

    def rank(self, case_id: str, context: Optional[ScoringContext] = None,
             state: Optional[CaseAnalysisState] = None) -> CaseRankings:
        """
        Score every person in the case independently and order by total score.
        A person that fails to score is logged and left out of the ranking.
        """
        self.repository.require_case(case_id)
        persons = self.repository.list_persons(case_id)

        with ThreadPoolExecutor(max_workers=self.ss_config.max_parallel_scores) as executor:
            futures = [
                (person, executor.submit(self._score_for_ranking, case_id, person.id, context))
                for person in persons
            ]
            scores: List[SuspicionScore] = []
            for person, future in futures:
                try:
                    scores.append(future.result())
                except BaseCaseReasoningException as e:
                    self.logger.warning(f"[{self.agent_name}] Failed to score {person.canonical_name}")
                    self._handle_error(state, e, item_id=person.id)

        # sorted() is stable, so equal totals keep insertion order
        scores = sorted(scores, key=lambda s: s.total_score, reverse=True)
        for position, score in enumerate(scores, start=1):
            score.ranking = position

        return CaseRankings(
            case_id=case_id,
            ranked_suspects=scores,
            total_persons_analyzed=len(scores),
            top_suspect=scores[0] if scores else None,
            average_score=sum(s.total_score for s in scores) / len(scores) if scores else 0.0,
        )

    def _run_implementation(self, state: CaseAnalysisState) -> CaseAnalysisState:
        context = None
        if state.scoring_context:
            context = ScoringContext.from_dict({"case_id": state.case_id, **state.scoring_context})

        rankings = self.rank(state.case_id, context, state=state)
        state.rankings = rankings.to_dict()

        critical = [s for s in rankings.ranked_suspects if s.priority_level == PriorityLevel.CRITICAL]
        if critical:
            state.set_review_required(
                f"{len(critical)} persons at critical priority: {', '.join(s.person_name for s in critical)}",
                self.agent_name)

        top = rankings.top_suspect
        self._update_agent_status(
            state,
            f"Ranked {rankings.total_persons_analyzed} persons"
            + (f"; top: {top.person_name} ({top.total_score:g})" if top else ""))
        return state
