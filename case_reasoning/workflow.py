# case_reasoning/workflow.py
import logging
from typing import Callable, Dict, Any, Optional

from langgraph.graph import StateGraph, END

from case_reasoning.agents.contradiction_detection.agent_wrapper import create_contradiction_detection_node
from case_reasoning.agents.entity_resolution.agent_wrapper import create_entity_resolution_node
from case_reasoning.agents.suspicion_scoring.agent_wrapper import create_suspicion_scoring_node
from case_reasoning.config.settings import PipelineConfig
from case_reasoning.core.state import CaseAnalysisState, ProcessingStatus
from case_reasoning.services.oracle import InferenceOracle
from case_reasoning.services.repository import CaseRepository

RESOLVE_MENTIONS = "resolve_mentions"
DETECT_CONTRADICTIONS = "detect_contradictions"
SCORE_SUSPECTS = "score_suspects"
FINALIZE = "finalize"

StageNode = Callable[[Dict[str, Any]], Dict[str, Any]]


def should_continue(state: Dict[str, Any]) -> str:
    """Routing after a stage: a run marked FAILED skips straight to finalization."""
    if state.get("status") == ProcessingStatus.FAILED.value:
        return "failed"
    return "continue"


def finalize_node(state_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Close the run and stamp its end time; the status set by the stages is kept."""
    state = CaseAnalysisState.from_dict(state_dict)
    state.complete_processing()
    state.add_log("workflow", f"Case analysis finished with status {state.status.value}")
    return state.to_dict()


def create_stage_nodes(config: PipelineConfig, logger: logging.Logger, repository: CaseRepository,
                       oracles: Optional[Dict[str, Optional[InferenceOracle]]] = None) -> Dict[str, StageNode]:
    """
    Build the three stage nodes keyed by graph node name. `oracles` maps a stage
    name to the oracle it may consult; a missing entry means rule-based only.
    """
    oracles = oracles or {}
    return {
        RESOLVE_MENTIONS: create_entity_resolution_node(
            config.entity_resolution, logger, repository, oracles.get("entity_resolution")),
        DETECT_CONTRADICTIONS: create_contradiction_detection_node(
            config.contradiction_detection, logger, repository, oracles.get("contradiction_detection")),
        SCORE_SUSPECTS: create_suspicion_scoring_node(
            config.suspicion_scoring, logger, repository, oracles.get("suspicion_scoring")),
    }


def create_workflow(config: PipelineConfig, logger: logging.Logger, repository: CaseRepository,
                    oracles: Optional[Dict[str, Optional[InferenceOracle]]] = None,
                    nodes: Optional[Dict[str, StageNode]] = None) -> StateGraph:
    """
    Wire the three stages into a LangGraph over a dict state:

        resolve_mentions -> detect_contradictions -> score_suspects -> finalize -> END

    Pass `nodes` (from create_stage_nodes) to keep hold of the stage agents.
    """
    if nodes is None:
        nodes = create_stage_nodes(config, logger, repository, oracles)
    workflow = StateGraph(dict)

    for name in (RESOLVE_MENTIONS, DETECT_CONTRADICTIONS, SCORE_SUSPECTS):
        workflow.add_node(name, nodes[name])
    workflow.add_node(FINALIZE, finalize_node)

    workflow.set_entry_point(RESOLVE_MENTIONS)
    workflow.add_conditional_edges(
        RESOLVE_MENTIONS,
        should_continue,
        {"continue": DETECT_CONTRADICTIONS, "failed": FINALIZE}
    )
    workflow.add_conditional_edges(
        DETECT_CONTRADICTIONS,
        should_continue,
        {"continue": SCORE_SUSPECTS, "failed": FINALIZE}
    )
    workflow.add_edge(SCORE_SUSPECTS, FINALIZE)
    workflow.add_edge(FINALIZE, END)

    logger.debug("Case analysis workflow created")
    return workflow
