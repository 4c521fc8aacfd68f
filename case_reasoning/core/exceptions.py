# case_reasoning/core/exceptions.py

"""
Custom exceptions for the case reasoning core.

Four families matter to callers:
  * not-found errors are fatal to the calling operation and always propagate;
  * invariant violations (self-merge and the like) are raised before any mutation;
  * oracle errors are caught at every call site and replaced by the rule-based path;
  * an ambiguous entity match is NOT an exception, it is an UnresolvedMention result.
"""

from typing import Optional, Dict, Any, List, Tuple
from enum import Enum


class ErrorSeverity(Enum):
    """Severity levels for errors."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class BaseCaseReasoningException(Exception):
    """
    Base exception class for all case reasoning errors.
    All custom exceptions in the package inherit from this class.
    """

    def __init__(self, message: str, severity: ErrorSeverity = ErrorSeverity.MEDIUM,
                 agent_name: Optional[str] = None, context: Optional[Dict[str, Any]] = None):
        """
        Initialize the exception.

        Args:
            message: Error message
            severity: Severity level of the error
            agent_name: Name of the agent where error occurred
            context: Additional context information (e.g., case_id, entity_id, fact_id)
        """
        self.message = message
        self.severity = severity
        self.agent_name = agent_name
        self.context = context or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        agent_info = f"[{self.agent_name}] " if self.agent_name else ""
        context_str = ", ".join(f"{k}={v}" for k, v in self.context.items() if v is not None) if self.context else ""
        if context_str:
            return f"{agent_info}{self.message} (Context: {context_str})"
        return f"{agent_info}{self.message}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            'message': self.message,
            'severity': self.severity.value,
            'agent_name': self.agent_name,
            'context': self.context,
            'exception_type': self.__class__.__name__
        }

    @staticmethod
    def _merge_context(existing_context: Dict[str, Any], kwargs_context: Dict[str, Any]) -> Dict[str, Any]:
        """Safely merge context dictionaries"""
        merged = kwargs_context.copy() if kwargs_context else {}
        merged.update(existing_context)
        return merged


# =============================================================================
# Configuration Exceptions
# =============================================================================

class EngineConfigurationError(BaseCaseReasoningException):
    """Raised when an agent's or service's configuration is invalid or missing."""
    def __init__(self, message: str, config_key: Optional[str] = None, **kwargs):
        self.config_key = config_key
        context = self._merge_context({"config_key": config_key}, kwargs.get("context", {}))
        super().__init__(message, severity=kwargs.get('severity', ErrorSeverity.CRITICAL),
                         agent_name=kwargs.get('agent_name'), context=context)


# =============================================================================
# Not-found Exceptions (fatal to the calling operation)
# =============================================================================

class NotFoundError(BaseCaseReasoningException):
    """A referenced record does not exist."""
    def __init__(self, message: str, record_type: str = "record", record_id: Optional[str] = None, **kwargs):
        self.record_type = record_type
        self.record_id = record_id
        context = self._merge_context({"record_type": record_type, "record_id": record_id}, kwargs.get("context", {}))
        super().__init__(message, severity=kwargs.get('severity', ErrorSeverity.HIGH),
                         agent_name=kwargs.get('agent_name'), context=context)


class CaseNotFoundError(NotFoundError):
    def __init__(self, case_id: str, **kwargs):
        super().__init__(f"Case not found: {case_id}", record_type="case", record_id=case_id, **kwargs)


class EntityNotFoundError(NotFoundError):
    def __init__(self, entity_id: str, **kwargs):
        super().__init__(f"Canonical entity not found: {entity_id}", record_type="entity", record_id=entity_id, **kwargs)


class FactNotFoundError(NotFoundError):
    def __init__(self, fact_id: str, **kwargs):
        super().__init__(f"Fact not found: {fact_id}", record_type="fact", record_id=fact_id, **kwargs)


class PersonNotFoundError(NotFoundError):
    def __init__(self, person_id: str, **kwargs):
        super().__init__(f"Person profile not found: {person_id}", record_type="person", record_id=person_id, **kwargs)


class ContradictionNotFoundError(NotFoundError):
    def __init__(self, contradiction_id: str, **kwargs):
        super().__init__(f"Contradiction not found: {contradiction_id}", record_type="contradiction",
                         record_id=contradiction_id, **kwargs)


# =============================================================================
# Invariant Violations (rejected before mutation)
# =============================================================================

class InvariantViolationError(BaseCaseReasoningException):
    """An operation would break a data invariant; the case is left unchanged."""
    def __init__(self, message: str, invariant: Optional[str] = None, **kwargs):
        self.invariant = invariant
        context = self._merge_context({"invariant": invariant}, kwargs.get("context", {}))
        super().__init__(message, severity=kwargs.get('severity', ErrorSeverity.MEDIUM),
                         agent_name=kwargs.get('agent_name'), context=context)


class SelfMergeError(InvariantViolationError):
    def __init__(self, entity_id: str, **kwargs):
        self.entity_id = entity_id
        super().__init__(f"Cannot merge entity {entity_id} into itself", invariant="no_self_merge",
                         context={"entity_id": entity_id}, **kwargs)


class CrossCaseMergeError(InvariantViolationError):
    def __init__(self, primary_id: str, secondary_id: str, **kwargs):
        super().__init__(f"Entities {primary_id} and {secondary_id} belong to different cases",
                         invariant="same_case_merge",
                         context={"primary_id": primary_id, "secondary_id": secondary_id}, **kwargs)


class DuplicateContradictionError(InvariantViolationError):
    """Raised on a strict insert of a pair that is already stored."""
    def __init__(self, pair: Tuple[str, str], **kwargs):
        self.pair = pair
        super().__init__(f"Contradiction for fact pair {pair[0]} / {pair[1]} already exists",
                         invariant="unique_fact_pair", context={"pair": f"{pair[0]}|{pair[1]}"}, **kwargs)


class SelfContradictionPairError(InvariantViolationError):
    def __init__(self, fact_id: str, **kwargs):
        super().__init__(f"A fact cannot contradict itself: {fact_id}", invariant="distinct_fact_pair",
                         context={"fact_id": fact_id}, **kwargs)


# =============================================================================
# Data Validation Exceptions
# =============================================================================

class ValidationError(BaseCaseReasoningException):
    """Base class for data validation failures."""
    def __init__(self, message: str, data_type: Optional[str] = None,
                 missing_fields: Optional[List[str]] = None, **kwargs):
        self.data_type = data_type
        self.missing_fields = missing_fields or []
        context = self._merge_context({"data_type": data_type, "missing_fields": missing_fields}, kwargs.get("context", {}))
        super().__init__(message, severity=kwargs.get('severity', ErrorSeverity.MEDIUM),
                         agent_name=kwargs.get('agent_name'), context=context)


class InputValidationError(ValidationError):
    """Raised when input data validation fails."""
    pass


# =============================================================================
# Oracle (inference service) Exceptions - always caught by the caller
# =============================================================================

class OracleError(BaseCaseReasoningException):
    """Base class for inference oracle failures."""
    def __init__(self, message: str, oracle_name: Optional[str] = None, **kwargs):
        self.oracle_name = oracle_name
        context = self._merge_context({"oracle_name": oracle_name}, kwargs.get("context", {}))
        super().__init__(message, severity=kwargs.get('severity', ErrorSeverity.LOW),
                         agent_name=kwargs.get('agent_name'), context=context)


class OracleUnavailableError(OracleError):
    """No oracle configured, circuit open, or the call itself failed."""
    pass


class OracleTimeoutError(OracleError):
    def __init__(self, message: str, timeout_seconds: Optional[float] = None, **kwargs):
        self.timeout_seconds = timeout_seconds
        context = self._merge_context({"timeout_seconds": timeout_seconds}, kwargs.get("context", {}))
        super().__init__(message, context=context, **{k: v for k, v in kwargs.items() if k != 'context'})


class OracleResponseError(OracleError):
    """The oracle answered but the reply could not be parsed or failed validation."""
    def __init__(self, message: str, expected_format: Optional[str] = None, **kwargs):
        self.expected_format = expected_format
        context = self._merge_context({"expected_format": expected_format}, kwargs.get("context", {}))
        super().__init__(message, context=context, **{k: v for k, v in kwargs.items() if k != 'context'})


# =============================================================================
# Processing Errors
# =============================================================================

class StageExecutionError(BaseCaseReasoningException):
    """A pipeline stage failed outright (wraps unexpected errors inside workflow nodes)."""
    def __init__(self, message: str, stage: Optional[str] = None, **kwargs):
        self.stage = stage
        context = self._merge_context({"stage": stage}, kwargs.get("context", {}))
        super().__init__(message, severity=kwargs.get('severity', ErrorSeverity.HIGH),
                         agent_name=kwargs.get('agent_name'), context=context)


# =============================================================================
# Helper Functions
# =============================================================================

def validate_required_fields(data: Dict, required_fields: List[str],
                             operation: str = "operation") -> None:
    """
    Helper function to validate required fields in a dictionary.
    Raises InputValidationError if any field is missing or empty.
    """
    missing_fields = [field for field in required_fields if field not in data or not data[field]]

    if missing_fields:
        raise InputValidationError(
            f"Missing required fields for {operation}: {', '.join(missing_fields)}",
            missing_fields=missing_fields,
            context={"operation": operation}
        )

