# case_reasoning/core/state.py
from typing import List, Optional, Dict, Any, Set
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
import uuid

from case_reasoning.core.exceptions import BaseCaseReasoningException, ErrorSeverity


class StageStatus(Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    NEEDS_REVIEW = "needs_review"


class ProcessingStatus(Enum):
    INITIALIZED = "initialized"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    NEEDS_REVIEW = "needs_review"


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            pass
    return datetime.now()


def _parse_optional_timestamp(value: Any) -> Optional[datetime]:
    return _parse_timestamp(value) if value else None


@dataclass
class StageLogEntry:
    stage_name: str
    message: str
    timestamp: datetime = field(default_factory=datetime.now)
    level: str = "INFO"
    context: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "stage_name": self.stage_name,
            "message": self.message,
            "level": self.level,
            "context": self.context,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'StageLogEntry':
        return cls(
            stage_name=data.get("stage_name", ""),
            message=data.get("message", ""),
            timestamp=_parse_timestamp(data.get("timestamp")),
            level=data.get("level", "INFO"),
            context=data.get("context", {}),
        )


@dataclass
class StageErrorEntry:
    stage_name: str
    error: BaseCaseReasoningException
    timestamp: datetime = field(default_factory=datetime.now)
    item_id: Optional[str] = None
    error_type: str = ""

    def __post_init__(self):
        if not self.error_type:
            self.error_type = self.error.__class__.__name__

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "stage_name": self.stage_name,
            "error_type": self.error_type,
            "message": self.error.message,
            "severity": self.error.severity.value,
            "item_id": self.item_id,
            "context": self.error.context,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'StageErrorEntry':
        # Only the generic exception can be rebuilt from its serialized form
        try:
            severity = ErrorSeverity(data.get("severity", ErrorSeverity.MEDIUM.value))
        except ValueError:
            severity = ErrorSeverity.MEDIUM
        error = BaseCaseReasoningException(
            data.get("message", "Unknown error"),
            severity=severity,
            agent_name=data.get("stage_name"),
            context=data.get("context", {}),
        )
        return cls(
            stage_name=data.get("stage_name", ""),
            error=error,
            timestamp=_parse_timestamp(data.get("timestamp")),
            item_id=data.get("item_id"),
            error_type=data.get("error_type", ""),
        )


@dataclass
class StageResult:
    stage_name: str
    status: StageStatus
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    error_message: Optional[str] = None
    output_data: Optional[Dict[str, Any]] = None
    retry_count: int = 0

    @property
    def execution_time(self) -> Optional[float]:
        if self.start_time and self.end_time:
            return (self.end_time - self.start_time).total_seconds()
        return None

    def mark_completed(self, status: StageStatus = StageStatus.COMPLETED,
                       output_data: Optional[Dict[str, Any]] = None):
        self.status = status
        self.end_time = datetime.now()
        if output_data:
            self.output_data = output_data

    def mark_failed(self, error: BaseCaseReasoningException):
        self.status = StageStatus.FAILED
        self.end_time = datetime.now()
        self.error_message = error.message

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stage_name": self.stage_name,
            "status": self.status.value,
            "start_time": self.start_time.isoformat() if self.start_time else None,
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "error_message": self.error_message,
            "output_data": self.output_data,
            "retry_count": self.retry_count,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'StageResult':
        return cls(
            stage_name=data.get("stage_name", ""),
            status=StageStatus(data.get("status", StageStatus.PENDING.value)),
            start_time=_parse_optional_timestamp(data.get("start_time")),
            end_time=_parse_optional_timestamp(data.get("end_time")),
            error_message=data.get("error_message"),
            output_data=data.get("output_data"),
            retry_count=data.get("retry_count", 0),
        )


@dataclass
class CaseAnalysisState:
    """
    Everything one pipeline run over a case carries between stages.

    Case data itself lives in the repository; the state only holds the run's
    inputs (raw mentions and documents), the serialized stage outputs and the
    bookkeeping for logs, errors and review flags.
    """
    case_id: str = ""
    workflow_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    status: ProcessingStatus = ProcessingStatus.INITIALIZED
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)
    processing_start_time: Optional[datetime] = None
    processing_end_time: Optional[datetime] = None

    # Inputs: {"mention_text", "context", "document_id"} and {"document_id", "text"}
    pending_mentions: List[Dict[str, Any]] = field(default_factory=list)
    documents: List[Dict[str, Any]] = field(default_factory=list)
    scoring_context: Optional[Dict[str, Any]] = None

    # Stage outputs, already serialized
    resolved_mentions: List[Dict[str, Any]] = field(default_factory=list)
    unresolved_mentions: List[Dict[str, Any]] = field(default_factory=list)
    merge_suggestions: List[Dict[str, Any]] = field(default_factory=list)
    contradiction_summary: Dict[str, Any] = field(default_factory=dict)
    rankings: Dict[str, Any] = field(default_factory=dict)

    # Stage execution tracking
    stage_results: Dict[str, StageResult] = field(default_factory=dict)
    execution_order: List[str] = field(default_factory=list)
    current_stage: Optional[str] = None
    completed_stages: Set[str] = field(default_factory=set)

    logs: List[str] = field(default_factory=list)
    stage_logs: List[StageLogEntry] = field(default_factory=list)
    stage_errors: List[StageErrorEntry] = field(default_factory=list)

    human_review_required: bool = False
    review_reasons: List[str] = field(default_factory=list)

    def start_processing(self):
        self.status = ProcessingStatus.IN_PROGRESS
        self.processing_start_time = datetime.now()
        self.update_timestamp()

    def complete_processing(self, status: Optional[ProcessingStatus] = None):
        """Close the run. Keeps FAILED / NEEDS_REVIEW unless an explicit status is given."""
        if status is not None:
            self.status = status
        elif self.status == ProcessingStatus.IN_PROGRESS:
            self.status = ProcessingStatus.COMPLETED
        self.processing_end_time = datetime.now()
        self.current_stage = None
        self.update_timestamp()

    def start_stage(self, stage_name: str):
        self.current_stage = stage_name
        if stage_name not in self.stage_results:
            self.stage_results[stage_name] = StageResult(
                stage_name=stage_name,
                status=StageStatus.IN_PROGRESS,
                start_time=datetime.now()
            )
        else:
            result = self.stage_results[stage_name]
            result.status = StageStatus.IN_PROGRESS
            result.start_time = datetime.now()
            result.retry_count += 1

        if stage_name not in self.execution_order:
            self.execution_order.append(stage_name)
        if self.status == ProcessingStatus.INITIALIZED:
            self.start_processing()
        self.update_timestamp()

    def complete_stage(self, stage_name: str, status: StageStatus = StageStatus.COMPLETED,
                       output_data: Optional[Dict[str, Any]] = None):
        if stage_name in self.stage_results:
            self.stage_results[stage_name].mark_completed(status, output_data)
            if status in (StageStatus.COMPLETED, StageStatus.NEEDS_REVIEW):
                self.completed_stages.add(stage_name)
        if self.current_stage == stage_name:
            self.current_stage = None
        self.update_timestamp()

    def fail_stage(self, stage_name: str, error: BaseCaseReasoningException, record_error: bool = True):
        """Mark a stage failed. Pass record_error=False when the agent already logged the error on this state."""
        if stage_name not in self.stage_results:
            self.start_stage(stage_name)
        self.stage_results[stage_name].mark_failed(error)
        if record_error:
            self.add_error(stage_name, error)
        if error.severity in (ErrorSeverity.CRITICAL, ErrorSeverity.HIGH):
            self.status = ProcessingStatus.FAILED
        if self.current_stage == stage_name:
            self.current_stage = None
        self.update_timestamp()

    def is_stage_completed(self, stage_name: str) -> bool:
        return stage_name in self.completed_stages

    def get_failed_stages(self) -> List[str]:
        return [name for name, result in self.stage_results.items()
                if result.status == StageStatus.FAILED]

    def update_timestamp(self):
        self.updated_at = datetime.now()

    def set_review_required(self, reason: str, stage_name: Optional[str] = None):
        """Mark state as requiring human review"""
        self.human_review_required = True
        full_reason = f"[{stage_name}] {reason}" if stage_name else reason
        if full_reason not in self.review_reasons:
            self.review_reasons.append(full_reason)
        if self.status == ProcessingStatus.IN_PROGRESS:
            self.status = ProcessingStatus.NEEDS_REVIEW
        if stage_name:
            self.add_log(stage_name, f"Review required: {reason}", level="WARNING")
        self.update_timestamp()

    def add_log(self, stage_name: str, message: str, level: str = "INFO",
                context: Optional[Dict[str, Any]] = None):
        self.logs.append(f"[{stage_name}] {message}")
        self.stage_logs.append(StageLogEntry(
            stage_name=stage_name,
            message=message,
            level=level,
            context=context or {}
        ))
        self.update_timestamp()

    def add_error(self, stage_name: str, error: BaseCaseReasoningException, item_id: Optional[str] = None):
        self.stage_errors.append(StageErrorEntry(stage_name=stage_name, error=error, item_id=item_id))
        self.logs.append(f"[{stage_name}] ERROR: {error.message}")
        self.update_timestamp()

    def get_processing_duration(self) -> Optional[float]:
        if self.processing_start_time is None:
            return None
        end_time = self.processing_end_time or datetime.now()
        return (end_time - self.processing_start_time).total_seconds()

    def get_execution_summary(self) -> Dict[str, Any]:
        return {
            "total_stages": len(self.stage_results),
            "completed": len(self.completed_stages),
            "failed": len(self.get_failed_stages()),
            "execution_times": {
                name: result.execution_time
                for name, result in self.stage_results.items()
                if result.execution_time is not None
            },
            "execution_order": self.execution_order.copy(),
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "case_id": self.case_id,
            "workflow_id": self.workflow_id,
            "status": self.status.value,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "processing_start_time": self.processing_start_time.isoformat() if self.processing_start_time else None,
            "processing_end_time": self.processing_end_time.isoformat() if self.processing_end_time else None,
            "pending_mentions": list(self.pending_mentions),
            "documents": list(self.documents),
            "scoring_context": self.scoring_context,
            "resolved_mentions": list(self.resolved_mentions),
            "unresolved_mentions": list(self.unresolved_mentions),
            "merge_suggestions": list(self.merge_suggestions),
            "contradiction_summary": self.contradiction_summary,
            "rankings": self.rankings,
            "stage_results": {name: result.to_dict() for name, result in self.stage_results.items()},
            "execution_order": list(self.execution_order),
            "current_stage": self.current_stage,
            "completed_stages": sorted(self.completed_stages),
            "logs": list(self.logs),
            "stage_logs": [entry.to_dict() for entry in self.stage_logs],
            "stage_errors": [entry.to_dict() for entry in self.stage_errors],
            "human_review_required": self.human_review_required,
            "review_reasons": list(self.review_reasons),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CaseAnalysisState':
        """Rebuild a state from the dict LangGraph passes between nodes."""
        return cls(
            case_id=data.get("case_id", ""),
            workflow_id=data.get("workflow_id") or str(uuid.uuid4()),
            status=ProcessingStatus(data.get("status", ProcessingStatus.INITIALIZED.value)),
            created_at=_parse_timestamp(data.get("created_at")),
            updated_at=_parse_timestamp(data.get("updated_at")),
            processing_start_time=_parse_optional_timestamp(data.get("processing_start_time")),
            processing_end_time=_parse_optional_timestamp(data.get("processing_end_time")),
            pending_mentions=list(data.get("pending_mentions", [])),
            documents=list(data.get("documents", [])),
            scoring_context=data.get("scoring_context"),
            resolved_mentions=list(data.get("resolved_mentions", [])),
            unresolved_mentions=list(data.get("unresolved_mentions", [])),
            merge_suggestions=list(data.get("merge_suggestions", [])),
            contradiction_summary=data.get("contradiction_summary", {}),
            rankings=data.get("rankings", {}),
            stage_results={name: StageResult.from_dict(result)
                           for name, result in data.get("stage_results", {}).items()},
            execution_order=list(data.get("execution_order", [])),
            current_stage=data.get("current_stage"),
            completed_stages=set(data.get("completed_stages", [])),
            logs=list(data.get("logs", [])),
            stage_logs=[StageLogEntry.from_dict(entry) for entry in data.get("stage_logs", [])],
            stage_errors=[StageErrorEntry.from_dict(entry) for entry in data.get("stage_errors", [])],
            human_review_required=data.get("human_review_required", False),
            review_reasons=list(data.get("review_reasons", [])),
        )

    def __str__(self) -> str:
        duration = self.get_processing_duration()
        duration_str = f"{duration:.2f}s" if duration else "N/A"
        return (f"CaseAnalysisState(case='{self.case_id}', status={self.status.value}, "
                f"duration={duration_str}, stages_completed={len(self.completed_stages)}, "
                f"errors={len(self.stage_errors)})")
