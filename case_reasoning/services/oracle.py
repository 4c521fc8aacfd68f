# case_reasoning/services/oracle.py
"""
The optional inference oracle: `infer(prompt) -> text`.

Call sites never talk to a model directly. They hold an InferenceOracle (usually a
GuardedOracle) whose only failure mode is an OracleError, which they catch and
replace with the rule-based answer.
"""
import logging
import threading
import time
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeoutError
from typing import Optional

import dspy
from dspy.signatures import InputField, OutputField

from case_reasoning.core.exceptions import (
    OracleError, OracleUnavailableError, OracleTimeoutError, OracleResponseError
)
from case_reasoning.services.llm_service import LLMService, create_llm_service_from_config


class CircuitBreaker:
    """Simple circuit breaker for external service calls"""

    def __init__(self, failure_threshold: int = 5, timeout: int = 60):
        self.failure_threshold = failure_threshold
        self.timeout = timeout
        self.failure_count = 0
        self.last_failure_time = None
        self.state = "closed"  # closed, open, half-open
        self._lock = threading.Lock()

    def call(self, func, *args, **kwargs):
        with self._lock:
            if self.state == "open":
                if time.time() - self.last_failure_time > self.timeout:
                    self.state = "half-open"
                else:
                    raise OracleUnavailableError("Circuit breaker is open", context={"failures": self.failure_count})

        try:
            result = func(*args, **kwargs)
        except Exception:
            with self._lock:
                self.failure_count += 1
                self.last_failure_time = time.time()
                if self.state == "half-open" or self.failure_count >= self.failure_threshold:
                    self.state = "open"
            raise

        with self._lock:
            if self.state == "half-open":
                self.state = "closed"
            self.failure_count = 0
        return result


class InferenceOracle(ABC):
    """Best-effort natural-language inference service."""

    name: str = "oracle"

    @abstractmethod
    def infer(self, prompt: str) -> str:
        """Return the model's raw text reply. Implementations may raise anything."""
        raise NotImplementedError


class OracleQuery(dspy.Signature):
    """
    You assist investigators reviewing a case file. Follow the instructions in the
    prompt exactly and answer in the format it asks for, with no extra commentary.
    """
    prompt: str = InputField(desc="Task instructions and the case material to reason over")
    response: str = OutputField(desc="The answer, in exactly the requested format")


class DSPyInferenceOracle(InferenceOracle):
    """Oracle backed by a dspy.Predict program over an LLMService model role."""

    def __init__(self, llm_service: LLMService, model_role: str = "primary"):
        self.llm_service = llm_service
        self.model_role = llm_service.get_fallback_model(model_role)
        self.name = f"dspy:{self.model_role}"
        self.predictor = dspy.Predict(OracleQuery)

    def infer(self, prompt: str) -> str:
        with self.llm_service.use_model(self.model_role):
            prediction = self.predictor(prompt=prompt)
        return prediction.response


class GuardedOracle(InferenceOracle):
    """
    Wraps another oracle with a hard timeout and a circuit breaker.
    Whatever goes wrong underneath surfaces as an OracleError subclass.
    """

    def __init__(self, inner: InferenceOracle, timeout: float = 30.0,
                 breaker: Optional[CircuitBreaker] = None,
                 logger: Optional[logging.Logger] = None):
        self.inner = inner
        self.timeout = timeout
        self.breaker = breaker or CircuitBreaker()
        self.logger = logger or logging.getLogger(__name__)
        self.name = getattr(inner, "name", inner.__class__.__name__)
        self._executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="oracle")

    def infer(self, prompt: str) -> str:
        try:
            return self.breaker.call(self._infer_with_timeout, prompt)
        except OracleError:
            raise
        except Exception as e:
            raise OracleUnavailableError(f"Oracle call failed: {e}", oracle_name=self.name) from e

    def _infer_with_timeout(self, prompt: str) -> str:
        future = self._executor.submit(self.inner.infer, prompt)
        try:
            reply = future.result(timeout=self.timeout)
        except FuturesTimeoutError:
            future.cancel()
            raise OracleTimeoutError(
                f"Oracle did not answer within {self.timeout}s",
                timeout_seconds=self.timeout, oracle_name=self.name)
        if not isinstance(reply, str) or not reply.strip():
            raise OracleResponseError("Oracle returned an empty reply", expected_format="text", oracle_name=self.name)
        return reply

    def close(self) -> None:
        self._executor.shutdown(wait=False)


def build_oracle(config, logger: logging.Logger, llm_service: Optional[LLMService] = None,
                 model_role: str = "primary") -> Optional[InferenceOracle]:
    """
    Build the guarded dspy oracle for a config, or None when the oracle is disabled
    or no model could be registered. The pipeline runs rule-only in that case.
    """
    if not config.enable_oracle:
        logger.info("Oracle disabled by configuration; running rule-based only")
        return None
    if llm_service is None:
        if not config.has_llm_credentials:
            logger.warning("No LLM credentials found; running rule-based only")
            return None
        llm_service = create_llm_service_from_config(config)
    if not llm_service.models:
        logger.warning("No LLM models registered; running rule-based only")
        return None
    breaker = CircuitBreaker(failure_threshold=config.circuit_breaker_threshold,
                             timeout=config.circuit_breaker_cooldown)
    return GuardedOracle(DSPyInferenceOracle(llm_service, model_role),
                         timeout=config.oracle_timeout, breaker=breaker, logger=logger)
