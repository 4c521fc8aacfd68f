# case_reasoning/agents/contradiction_detection/agent.py
import logging
import time
from datetime import datetime
from typing import List, Optional, Union

from case_reasoning.agents.contradiction_detection.detectors import (
    detect_timeline_contradictions, detect_self_contradictions, detect_witness_conflicts,
    detect_evidence_contradictions, deduplicate,
)
from case_reasoning.agents.contradiction_detection.prompts import build_contradiction_prompt
from case_reasoning.config.settings import ContradictionDetectionConfig
from case_reasoning.core.base_agent import BaseOracleAgent
from case_reasoning.core.exceptions import EngineConfigurationError, OracleResponseError, ErrorSeverity
from case_reasoning.core.state import CaseAnalysisState
from case_reasoning.models.contradiction import Contradiction, ContradictionDetectionResult
from case_reasoning.models.enums import (
    ContradictionSeverity, ContradictionType, ResolutionStatus, DetectionMethod
)
from case_reasoning.models.fact import AtomicFact
from case_reasoning.models.oracle import parse_oracle_contradictions
from case_reasoning.services.oracle import InferenceOracle
from case_reasoning.services.repository import CaseRepository, PersonKeys
from case_reasoning.utils.sampling import sample_items


def _unique(values: List[str]) -> List[str]:
    seen, ordered = set(), []
    for value in values:
        if value and value not in seen:
            seen.add(value)
            ordered.append(value)
    return ordered


class ContradictionDetectionAgent(BaseOracleAgent):
    """
    Finds conflicting fact pairs in a case and stores each pair once.

    Four rule detectors always run; the oracle pass is an optional extra over a
    seeded sample of the facts. Re-running on unchanged facts writes nothing new
    and leaves reviewer decisions on stored contradictions untouched.
    """

    def __init__(self, config: ContradictionDetectionConfig, logger: logging.Logger,
                 repository: CaseRepository, oracle: Optional[InferenceOracle] = None):
        if not isinstance(config, ContradictionDetectionConfig):
            raise EngineConfigurationError(
                f"Config must be an instance of ContradictionDetectionConfig, got {type(config)}.",
                config_key="contradiction_detection_config_type",
                severity=ErrorSeverity.CRITICAL
            )
        super().__init__(config, logger, oracle=oracle)
        self.cd_config: ContradictionDetectionConfig = config
        self.repository = repository

    def detect(self, case_id: str) -> ContradictionDetectionResult:
        started = time.perf_counter()
        self.repository.require_case(case_id)
        facts = self.repository.list_facts(case_id)
        self.logger.info(f"[{self.agent_name}] Checking {len(facts)} facts in case {case_id}")

        keys = PersonKeys(self.repository, case_id)
        candidates: List[Contradiction] = []
        candidates.extend(detect_timeline_contradictions(
            case_id, facts,
            major_minutes=self.cd_config.major_overlap_minutes,
            significant_minutes=self.cd_config.significant_overlap_minutes,
            keys=keys))
        candidates.extend(detect_self_contradictions(case_id, facts, keys=keys))
        candidates.extend(detect_witness_conflicts(case_id, facts, keys=keys))
        candidates.extend(detect_evidence_contradictions(
            case_id, facts, confidence=self.cd_config.evidence_confidence))

        oracle_used = False
        if self.oracle_available and facts:
            oracle_found = self._detect_with_oracle(case_id, facts)
            if oracle_found is not None:
                oracle_used = True
                candidates.extend(oracle_found)

        unique = deduplicate(candidates)
        stored = [c for c in unique if self.repository.upsert_contradiction(c)]
        for contradiction in unique:
            self.repository.mark_fact_contradicted(contradiction.fact1_id, contradiction.fact2_id)
            self.repository.mark_fact_contradicted(contradiction.fact2_id, contradiction.fact1_id)

        by_severity = {severity.value: 0 for severity in ContradictionSeverity}
        by_type = {kind.value: 0 for kind in ContradictionType}
        for contradiction in unique:
            by_severity[contradiction.severity.value] += 1
            by_type[contradiction.contradiction_type.value] += 1

        result = ContradictionDetectionResult(
            case_id=case_id,
            total_contradictions_found=len(unique),
            new_contradictions=stored,
            by_severity=by_severity,
            by_type=by_type,
            involved_persons=_unique([p for c in unique for p in c.involved_persons]),
            oracle_used=oracle_used,
            processing_time_ms=(time.perf_counter() - started) * 1000,
        )
        self.logger.info(
            f"[{self.agent_name}] Case {case_id}: {len(unique)} contradictions detected, {len(stored)} new")
        return result

    def _detect_with_oracle(self, case_id: str, facts: List[AtomicFact]) -> Optional[List[Contradiction]]:
        """Oracle suggestions over a seeded sample. None means the pass produced nothing usable."""
        sampled = sample_items(facts, self.cd_config.oracle_sample_size, seed=self.cd_config.oracle_sample_seed)
        reply = self._consult_oracle(build_contradiction_prompt(sampled), purpose="contradiction pass")
        if reply is None:
            return None

        by_id = {f.id: f for f in sampled}
        try:
            suggestions = parse_oracle_contradictions(reply, set(by_id))
        except OracleResponseError as e:
            self._record_oracle_rejection("contradiction pass", e)
            return None

        found = []
        for suggestion in suggestions:
            fact1, fact2 = by_id[suggestion.fact1_id], by_id[suggestion.fact2_id]
            found.append(Contradiction(
                case_id=case_id,
                fact1_id=fact1.id,
                fact2_id=fact2.id,
                fact1_summary=fact1.predicate,
                fact2_summary=fact2.predicate,
                contradiction_type=suggestion.contradiction_type,
                severity=suggestion.severity,
                description=suggestion.description,
                analysis=suggestion.analysis,
                implications=suggestion.implications,
                suggested_followup="AI-identified contradiction requires human review",
                involved_persons=_unique(
                    fact1.mentioned_persons + fact2.mentioned_persons + [fact1.speaker, fact2.speaker]),
                detection_method=DetectionMethod.AI_ENHANCED,
                confidence_score=suggestion.confidence,
            ))
        self.logger.debug(f"[{self.agent_name}] Oracle proposed {len(found)} contradictions")
        return found

    # ------------------------------------------------------------------
    # Queries and review
    # ------------------------------------------------------------------

    @staticmethod
    def _by_severity(contradictions: List[Contradiction]) -> List[Contradiction]:
        return sorted(contradictions, key=lambda c: c.severity.rank, reverse=True)

    def get_contradictions_for_case(self, case_id: str) -> List[Contradiction]:
        return self._by_severity(self.repository.list_contradictions(case_id))

    def get_contradictions_for_person(self, case_id: str, person_name: str) -> List[Contradiction]:
        needle = person_name.lower()
        return [c for c in self.repository.list_contradictions(case_id)
                if any(p.lower() == needle for p in c.involved_persons)]

    def get_unresolved(self, case_id: str) -> List[Contradiction]:
        return self._by_severity([c for c in self.repository.list_contradictions(case_id)
                                  if c.resolution_status == ResolutionStatus.UNRESOLVED])

    def get_critical(self, case_id: str) -> List[Contradiction]:
        """Critical and major contradictions, newest first."""
        serious = (ContradictionSeverity.CRITICAL, ContradictionSeverity.MAJOR)
        return sorted((c for c in self.repository.list_contradictions(case_id) if c.severity in serious),
                      key=lambda c: c.detected_at, reverse=True)

    def update_resolution(self, contradiction_id: str, status: Union[ResolutionStatus, str],
                          notes: Optional[str] = None, resolved_by: Optional[str] = None) -> Contradiction:
        """Record a reviewer's decision. This is the only path that changes resolution_status."""
        contradiction = self.repository.get_contradiction(contradiction_id)
        contradiction.resolution_status = ResolutionStatus(status)
        contradiction.resolution_notes = notes
        contradiction.resolved_by = resolved_by
        contradiction.resolved_at = datetime.now()
        self.logger.info(
            f"[{self.agent_name}] Contradiction {contradiction_id} marked {contradiction.resolution_status.value}")
        return contradiction

    # ------------------------------------------------------------------
    # Pipeline stage
    # ------------------------------------------------------------------

    def _run_implementation(self, state: CaseAnalysisState) -> CaseAnalysisState:
        result = self.detect(state.case_id)
        state.contradiction_summary = result.to_dict()

        critical = result.by_severity[ContradictionSeverity.CRITICAL.value]
        if critical:
            state.set_review_required(f"{critical} critical contradictions detected", self.agent_name)

        self._update_agent_status(
            state,
            f"Detected {result.total_contradictions_found} contradictions "
            f"({len(result.new_contradictions)} new) involving {len(result.involved_persons)} persons")
        return state
