# case_reasoning/agents/contradiction_detection/agent_wrapper.py
import logging
from typing import Callable, Dict, Any, Optional

from case_reasoning.agents.contradiction_detection.agent import ContradictionDetectionAgent
from case_reasoning.config.settings import ContradictionDetectionConfig
from case_reasoning.core.stage_runner import run_agent_stage
from case_reasoning.core.state import CaseAnalysisState
from case_reasoning.services.oracle import InferenceOracle
from case_reasoning.services.repository import CaseRepository

STAGE_NAME = "contradiction_detection"


def _summarize(state: CaseAnalysisState) -> Dict[str, Any]:
    summary = state.contradiction_summary
    return {
        "total_contradictions_found": summary.get("total_contradictions_found", 0),
        "new_contradictions": len(summary.get("new_contradictions", [])),
        "by_severity": summary.get("by_severity", {}),
        "oracle_used": summary.get("oracle_used", False),
    }


def create_contradiction_detection_node(
    config: ContradictionDetectionConfig,
    logger: logging.Logger,
    repository: CaseRepository,
    oracle: Optional[InferenceOracle] = None
) -> Callable[[Dict[str, Any]], Dict[str, Any]]:
    """Factory for the LangGraph node that runs contradiction detection over the case's facts."""
    agent = ContradictionDetectionAgent(config=config, logger=logger, repository=repository, oracle=oracle)

    def contradiction_detection_node(state_dict: Dict[str, Any]) -> Dict[str, Any]:
        return run_agent_stage(agent, STAGE_NAME, state_dict, logger, _summarize)

    contradiction_detection_node.agent = agent
    return contradiction_detection_node
