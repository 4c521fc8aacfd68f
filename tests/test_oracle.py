# tests/test_oracle.py
import json
import threading
from types import SimpleNamespace

import pytest

from case_reasoning.config.settings import EntityResolutionConfig
from case_reasoning.core.exceptions import (
    OracleUnavailableError, OracleTimeoutError, OracleResponseError
)
from case_reasoning.models.enums import ContradictionSeverity, ContradictionType, FactorCategory
from case_reasoning.models.oracle import (
    parse_oracle_choice, parse_oracle_contradictions, parse_oracle_refinement
)
from case_reasoning.services.llm_service import LLMService, EnvironmentLLMConfig
from case_reasoning.services.oracle import (
    CircuitBreaker, GuardedOracle, DSPyInferenceOracle, InferenceOracle, build_oracle
)
from tests.conftest import FakeOracle


class ExplodingOracle(InferenceOracle):
    name = "exploding"

    def __init__(self):
        self.calls = 0

    def infer(self, prompt: str) -> str:
        self.calls += 1
        raise RuntimeError("connection reset")


class BlockingOracle(InferenceOracle):
    name = "blocking"

    def __init__(self):
        self.release = threading.Event()

    def infer(self, prompt: str) -> str:
        self.release.wait(timeout=5)
        return "late"


@pytest.fixture
def llm_service():
    service = LLMService(EnvironmentLLMConfig())
    service.register_model("primary", "openai/gpt-4o-mini", api_key="test-key")
    return service


class TestGuardedOracle:
    """Every failure underneath surfaces as an OracleError."""

    def test_passes_replies_through(self):
        guarded = GuardedOracle(FakeOracle("2"))
        assert guarded.infer("pick one") == "2"
        assert guarded.name == "fake"

    def test_wraps_arbitrary_failures(self):
        guarded = GuardedOracle(ExplodingOracle())
        with pytest.raises(OracleUnavailableError) as exc_info:
            guarded.infer("anything")
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    def test_timeout(self):
        inner = BlockingOracle()
        guarded = GuardedOracle(inner, timeout=0.05)
        try:
            with pytest.raises(OracleTimeoutError):
                guarded.infer("slow question")
        finally:
            inner.release.set()
            guarded.close()

    @pytest.mark.parametrize("reply", ["", "   \n"])
    def test_empty_reply(self, reply):
        with pytest.raises(OracleResponseError):
            GuardedOracle(FakeOracle(reply)).infer("question")

    def test_circuit_opens_after_threshold(self):
        inner = ExplodingOracle()
        guarded = GuardedOracle(inner, breaker=CircuitBreaker(failure_threshold=2, timeout=60))
        for _ in range(2):
            with pytest.raises(OracleUnavailableError):
                guarded.infer("q")
        with pytest.raises(OracleUnavailableError, match="Circuit breaker is open"):
            guarded.infer("q")
        assert inner.calls == 2
        assert guarded.breaker.state == "open"

    def test_success_resets_failure_count(self):
        breaker = CircuitBreaker(failure_threshold=3)
        with pytest.raises(RuntimeError):
            breaker.call(ExplodingOracle().infer, "q")
        assert breaker.call(lambda: "ok") == "ok"
        assert breaker.failure_count == 0
        assert breaker.state == "closed"


class TestBuildOracle:
    """Oracle construction falls back to None rather than failing the pipeline."""

    def test_disabled(self, logger, llm_service):
        assert build_oracle(EntityResolutionConfig(enable_oracle=False), logger, llm_service=llm_service) is None

    def test_no_models(self, logger):
        empty = LLMService(EnvironmentLLMConfig())
        assert build_oracle(EntityResolutionConfig(enable_oracle=True), logger, llm_service=empty) is None

    def test_missing_role_falls_back_to_primary(self, logger, llm_service):
        config = EntityResolutionConfig(enable_oracle=True, oracle_timeout=12.0, circuit_breaker_threshold=4)
        oracle = build_oracle(config, logger, llm_service=llm_service, model_role="secondary")
        assert isinstance(oracle, GuardedOracle)
        assert oracle.name == "dspy:primary"
        assert oracle.timeout == 12.0
        assert oracle.breaker.failure_threshold == 4

    def test_dspy_oracle_returns_prediction_text(self, llm_service):
        oracle = DSPyInferenceOracle(llm_service)
        oracle.predictor = lambda prompt: SimpleNamespace(response=f"echo: {prompt}")
        assert oracle.infer("hello") == "echo: hello"


class TestParseChoice:
    """Numbered-candidate answers."""

    @pytest.mark.parametrize("reply,index", [("1", 0), ("2.", 1), (" 3 - the third one", 2)])
    def test_valid_indices(self, reply, index):
        assert parse_oracle_choice(reply, 3).index == index

    @pytest.mark.parametrize("reply", ["0", "None", "no match", "NULL."])
    def test_none_answers(self, reply):
        assert parse_oracle_choice(reply, 3).is_none

    @pytest.mark.parametrize("reply", [None, "the first", "7"])
    def test_rejected(self, reply):
        with pytest.raises(OracleResponseError):
            parse_oracle_choice(reply, 3)


class TestParseContradictions:
    """Only well-formed entries over known, distinct facts survive."""

    def test_filters_entries(self):
        reply = "Here you go:\n" + json.dumps({"contradictions": [
            {"fact1Id": "a", "fact2Id": "b", "type": "WITNESS_CONFLICT", "severity": "Major", "confidence": 3},
            {"fact1_id": "a", "fact2_id": "c", "type": "statement_conflict", "severity": "minor"},
            {"fact1Id": "a", "fact2Id": "zzz", "type": "statement_conflict", "severity": "minor"},
            {"fact1Id": "b", "fact2Id": "b", "type": "statement_conflict", "severity": "minor"},
            {"fact1Id": "b", "fact2Id": "c", "type": "made_up", "severity": "minor"},
            "not an object",
        ]})
        parsed = parse_oracle_contradictions(reply, {"a", "b", "c"})
        assert [(p.fact1_id, p.fact2_id) for p in parsed] == [("a", "b"), ("a", "c")]
        assert parsed[0].contradiction_type == ContradictionType.WITNESS_CONFLICT
        assert parsed[0].severity == ContradictionSeverity.MAJOR
        assert parsed[0].confidence == 1.0
        assert parsed[1].confidence == 0.5

    def test_empty_list_is_valid(self):
        assert parse_oracle_contradictions('{"contradictions": []}', {"a"}) == []

    @pytest.mark.parametrize("reply", ["nothing found", '{"contradictions": "none"}', "[1, 2]"])
    def test_rejected(self, reply):
        with pytest.raises(OracleResponseError):
            parse_oracle_contradictions(reply, {"a"})


class TestParseRefinement:
    """Scoring review replies."""

    def test_clamps_and_drops_evidence_factors(self):
        reply = json.dumps({
            "adjustedScores": {"opportunity": 40, "means": -3, "motive": "12"},
            "additionalFactors": [
                {"factor": "Fled the state", "weight": 30, "category": "behavior"},
                {"factor": "Shoe print match", "weight": 15, "category": "evidence"},
                {"factor": "", "weight": 2},
                {"factor": "Bad category", "category": "astrology"},
            ],
            "missedPatterns": ["Repeated calls to victim"],
            "confidenceInScoring": 2,
        })
        review = parse_oracle_refinement(reply, 25)
        assert review.adjusted_scores == {"opportunity": 25.0, "means": 0.0, "motive": 12.0}
        assert [f.factor for f in review.additional_factors] == ["Fled the state"]
        assert review.additional_factors[0].weight == 25.0
        assert review.additional_factors[0].category == FactorCategory.BEHAVIOR
        assert review.missed_patterns == ["Repeated calls to victim"]
        assert review.confidence_in_scoring == 1.0

    def test_lone_strings_become_single_item_lists(self):
        reply = json.dumps({
            "adjustedScores": {},
            "missedPatterns": "Repeated calls to victim",
            "criticalNextSteps": 42,
            "additionalFactors": "Fled the state",
        })
        review = parse_oracle_refinement(reply, 25)
        assert review.missed_patterns == ["Repeated calls to victim"]
        assert review.critical_next_steps == []
        assert review.additional_factors == []

    @pytest.mark.parametrize("reply", [
        "no json",
        '{"adjustedScores": [1, 2]}',
        '{"adjustedScores": {"means": "high"}}',
    ])
    def test_rejected(self, reply):
        with pytest.raises(OracleResponseError):
            parse_oracle_refinement(reply, 25)
