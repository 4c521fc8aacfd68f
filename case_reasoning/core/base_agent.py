# case_reasoning/core/base_agent.py
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional, List, Any, Callable

from case_reasoning.config.settings import BaseEngineConfig
from case_reasoning.core.state import CaseAnalysisState
from case_reasoning.core.exceptions import (
    BaseCaseReasoningException,
    EngineConfigurationError,
    StageExecutionError,
    OracleError,
    ErrorSeverity,
)
from case_reasoning.services.oracle import InferenceOracle


@dataclass
class AgentMetrics:
    """
    Dataclass to hold performance metrics for an agent.
    """
    total_runs: int = 0
    successful_runs: int = 0
    failed_runs: int = 0
    errors: List[str] = field(default_factory=list)
    total_processing_time: float = 0.0
    average_processing_time: float = 0.0
    items_processed: int = 0
    items_failed: int = 0
    oracle_calls_made: int = 0
    oracle_failures: int = 0

    def update_average_processing_time(self):
        if self.successful_runs > 0:
            self.average_processing_time = self.total_processing_time / self.successful_runs
        else:
            self.average_processing_time = 0.0

    def add_error(self, error_message: str, max_errors: int = 1000):
        """Adds an error message to the list of errors with bounds checking."""
        if len(self.errors) >= max_errors:
            self.errors.pop(0)
        self.errors.append(error_message)


class BaseAgent(ABC):
    """
    Abstract base class for the pipeline stages.
    Provides configuration checks, logging, error bookkeeping, metrics and
    interaction with the CaseAnalysisState.
    """

    def __init__(self, config: BaseEngineConfig, logger: logging.Logger):
        if not isinstance(config, BaseEngineConfig):
            raise EngineConfigurationError(
                f"Config must be an instance of BaseEngineConfig or its subclass, got {type(config)}.",
                config_key="base_agent_config_type",
                severity=ErrorSeverity.CRITICAL
            )
        if not isinstance(logger, logging.Logger):
            raise EngineConfigurationError(
                f"Logger must be a logging.Logger instance, got {type(logger)}.",
                config_key="base_agent_logger_type",
                severity=ErrorSeverity.CRITICAL
            )

        self.config: BaseEngineConfig = config
        self.logger: logging.Logger = logger
        self.metrics: AgentMetrics = AgentMetrics()
        self.agent_name: str = self.__class__.__name__
        self._current_state: Optional[CaseAnalysisState] = None

        self.logger.debug(f"Agent '{self.agent_name}' initialized")

    @abstractmethod
    def _run_implementation(self, state: CaseAnalysisState) -> CaseAnalysisState:
        """Run this stage over the case named in the state."""
        raise NotImplementedError("Each agent must implement its own '_run_implementation' method.")

    def run(self, state: CaseAnalysisState) -> CaseAnalysisState:
        """Main entry point for agent execution."""
        self._current_state = state
        try:
            with self:
                return self._run_implementation(state)
        finally:
            self._current_state = None

    def _update_agent_status(self, state: CaseAnalysisState, status_message: str, level: str = "INFO"):
        if hasattr(state, 'add_log'):
            state.add_log(self.agent_name, status_message, level=level)
        self.logger.log(getattr(logging, level.upper()), f"[{self.agent_name}] {status_message}")

    def _handle_error(self, state: Optional[CaseAnalysisState], error: BaseCaseReasoningException,
                      item_id: Optional[str] = None):
        """Log a structured error and record it on the state (when there is one)."""
        if not error.agent_name:
            error.agent_name = self.agent_name
        self.logger.error(f"[{self.agent_name}] Error: {error.message} (Type: {error.__class__.__name__})")
        if state is not None and hasattr(state, 'add_error'):
            state.add_error(self.agent_name, error, item_id=item_id)
        if item_id:
            self.metrics.items_failed += 1
        self.metrics.add_error(error.message)

    def _safe_process_item(self, func: Callable, state: Optional[CaseAnalysisState], item: Any,
                           item_id: Optional[str] = None) -> Optional[Any]:
        """
        Processes a single item, recording failures instead of raising.
        Only package exceptions are absorbed; anything else is a bug and propagates.
        """
        try:
            result = func(item)
            self.metrics.items_processed += 1
            return result
        except BaseCaseReasoningException as e:
            self._handle_error(state, e, item_id=item_id)
            return None

    def get_metrics(self) -> AgentMetrics:
        self.metrics.update_average_processing_time()
        return self.metrics

    def __enter__(self):
        """Context manager entry: records start time for metrics."""
        self.start_time = time.time()
        self.metrics.total_runs += 1
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit: records end time and updates metrics."""
        end_time = time.time()
        elapsed_time = end_time - getattr(self, 'start_time', end_time)
        self.metrics.total_processing_time += elapsed_time

        if exc_type is None:
            self.metrics.successful_runs += 1
            self.logger.info(f"[{self.agent_name}] Run completed in {elapsed_time:.2f} seconds.")
            return False

        self.metrics.failed_runs += 1
        if isinstance(exc_val, BaseCaseReasoningException):
            handled_error = exc_val
        else:
            handled_error = StageExecutionError(
                f"Run failed due to {exc_type.__name__}: {exc_val}",
                stage=self.agent_name,
                agent_name=self.agent_name,
                severity=ErrorSeverity.CRITICAL,
                context={"original_exception_type": exc_type.__name__}
            )
        self._handle_error(self._current_state, handled_error)
        return False


class BaseOracleAgent(BaseAgent):
    """A stage that may consult the inference oracle but never depends on it."""

    def __init__(self, config: BaseEngineConfig, logger: logging.Logger,
                 oracle: Optional[InferenceOracle] = None):
        super().__init__(config, logger)
        if oracle is not None and not isinstance(oracle, InferenceOracle):
            raise EngineConfigurationError(
                f"Oracle must implement InferenceOracle, got {type(oracle)}.",
                config_key="oracle",
                agent_name=self.agent_name,
            )
        self.oracle = oracle if config.enable_oracle else None

    @property
    def oracle_available(self) -> bool:
        return self.oracle is not None

    def _consult_oracle(self, prompt: str, purpose: str) -> Optional[str]:
        """
        Ask the oracle. Returns None when there is no oracle or the call failed;
        the caller then continues with its deterministic result.
        """
        if self.oracle is None:
            return None
        self.metrics.oracle_calls_made += 1
        try:
            return self.oracle.infer(prompt)
        except OracleError as e:
            self.metrics.oracle_failures += 1
            self.logger.warning(
                f"[{self.agent_name}] Oracle unavailable for {purpose}, using rule-based result: {e.message}")
            return None

    def _record_oracle_rejection(self, purpose: str, error: OracleError) -> None:
        """Bookkeeping for a reply that arrived but failed validation."""
        self.metrics.oracle_failures += 1
        self.logger.warning(
            f"[{self.agent_name}] Discarding oracle reply for {purpose}: {error.message}")
