# case_reasoning/agents/entity_resolution/agent_wrapper.py
import logging
from typing import Callable, Dict, Any, Optional

from case_reasoning.agents.entity_resolution.agent import EntityResolutionAgent
from case_reasoning.config.settings import EntityResolutionConfig
from case_reasoning.core.stage_runner import run_agent_stage
from case_reasoning.core.state import CaseAnalysisState
from case_reasoning.services.oracle import InferenceOracle
from case_reasoning.services.repository import CaseRepository

STAGE_NAME = "entity_resolution"


def _summarize(state: CaseAnalysisState) -> Dict[str, Any]:
    return {
        "resolved": len(state.resolved_mentions),
        "unresolved": len(state.unresolved_mentions),
        "needs_review": sum(1 for m in state.unresolved_mentions if m.get("needs_human_review")),
        "merge_suggestions": len(state.merge_suggestions),
    }


def create_entity_resolution_node(
    config: EntityResolutionConfig,
    logger: logging.Logger,
    repository: CaseRepository,
    oracle: Optional[InferenceOracle] = None
) -> Callable[[Dict[str, Any]], Dict[str, Any]]:
    """Factory for the LangGraph node that resolves the run's pending mentions and documents."""
    agent = EntityResolutionAgent(config=config, logger=logger, repository=repository, oracle=oracle)

    def entity_resolution_node(state_dict: Dict[str, Any]) -> Dict[str, Any]:
        return run_agent_stage(agent, STAGE_NAME, state_dict, logger, _summarize)

    entity_resolution_node.agent = agent
    return entity_resolution_node
