# case_reasoning/core/stage_runner.py
import logging
from typing import Callable, Dict, Any

from case_reasoning.core.base_agent import BaseAgent
from case_reasoning.core.exceptions import BaseCaseReasoningException, StageExecutionError, ErrorSeverity
from case_reasoning.core.state import CaseAnalysisState, StageStatus

StateDict = Dict[str, Any]
OutputBuilder = Callable[[CaseAnalysisState], Dict[str, Any]]


def run_agent_stage(agent: BaseAgent, stage_name: str, state_dict: StateDict,
                    logger: logging.Logger, build_output: OutputBuilder) -> StateDict:
    """
    Run one agent as a LangGraph node over the dict state.

    The agent has already recorded any error on the state by the time it reaches
    this function, so a failure only marks the stage failed here.
    """
    state = CaseAnalysisState.from_dict(state_dict)
    state.start_stage(stage_name)
    reviews_before = len(state.review_reasons)
    logger.info(f"[workflow] Starting stage '{stage_name}' for case {state.case_id}")

    try:
        state = agent.run(state)
    except BaseCaseReasoningException as e:
        state.fail_stage(stage_name, e, record_error=False)
        logger.error(f"[workflow] Stage '{stage_name}' failed: {e.message}")
        return state.to_dict()
    except Exception as e:
        error = StageExecutionError(
            f"Unexpected error in stage '{stage_name}': {e}",
            stage=stage_name,
            agent_name=agent.agent_name,
            severity=ErrorSeverity.CRITICAL,
        )
        state.fail_stage(stage_name, error, record_error=False)
        logger.exception(f"[workflow] Stage '{stage_name}' crashed")
        return state.to_dict()

    status = StageStatus.NEEDS_REVIEW if len(state.review_reasons) > reviews_before else StageStatus.COMPLETED
    state.complete_stage(stage_name, status, output_data=build_output(state))
    logger.info(f"[workflow] Stage '{stage_name}' finished with status {status.value}")
    return state.to_dict()
