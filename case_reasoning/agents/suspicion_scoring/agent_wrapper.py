# case_reasoning/agents/suspicion_scoring/agent_wrapper.py
import logging
from typing import Callable, Dict, Any, Optional

from case_reasoning.agents.suspicion_scoring.agent import SuspicionScoringAgent
from case_reasoning.config.settings import SuspicionScoringConfig
from case_reasoning.core.stage_runner import run_agent_stage
from case_reasoning.core.state import CaseAnalysisState
from case_reasoning.services.oracle import InferenceOracle
from case_reasoning.services.repository import CaseRepository

STAGE_NAME = "suspicion_scoring"


def _summarize(state: CaseAnalysisState) -> Dict[str, Any]:
    rankings = state.rankings
    return {
        "total_persons_analyzed": rankings.get("total_persons_analyzed", 0),
        "top_suspect": rankings.get("top_suspect"),
        "average_score": rankings.get("average_score", 0.0),
    }


def create_suspicion_scoring_node(
    config: SuspicionScoringConfig,
    logger: logging.Logger,
    repository: CaseRepository,
    oracle: Optional[InferenceOracle] = None
) -> Callable[[Dict[str, Any]], Dict[str, Any]]:
    """Factory for the LangGraph node that scores and ranks every person in the case."""
    agent = SuspicionScoringAgent(config=config, logger=logger, repository=repository, oracle=oracle)

    def suspicion_scoring_node(state_dict: Dict[str, Any]) -> Dict[str, Any]:
        return run_agent_stage(agent, STAGE_NAME, state_dict, logger, _summarize)

    suspicion_scoring_node.agent = agent
    return suspicion_scoring_node
