# case_reasoning/main.py
import argparse
import json
import logging
from typing import Optional, List, Dict, Any

from langgraph.graph import StateGraph

from case_reasoning.config.settings import PipelineConfig
from case_reasoning.core.exceptions import BaseCaseReasoningException, InputValidationError, validate_required_fields
from case_reasoning.core.state import CaseAnalysisState
from case_reasoning.models import (
    CanonicalEntity, AtomicFact, PersonProfile, PersonClaim, PersonAlibi, GuiltyKnowledgeIndicator,
)
from case_reasoning.services.llm_service import create_llm_service_from_config
from case_reasoning.services.logger import LoggerService
from case_reasoning.services.oracle import build_oracle
from case_reasoning.services.repository import CaseRepository, InMemoryCaseRepository
from case_reasoning.workflow import create_workflow, create_stage_nodes


def setup_logging(config: PipelineConfig) -> LoggerService:
    log_level = logging.DEBUG if config.debug_mode else getattr(logging, config.logging_level.upper())
    return LoggerService(name="case_reasoning", level=log_level)


def initialize_services(config: PipelineConfig, logger_service: LoggerService,
                        repository: Optional[CaseRepository] = None) -> Dict[str, Any]:
    """
    Build the shared services: logger, repository and one oracle per stage.
    A stage whose oracle cannot be built runs rule-based only.
    """
    logger = logger_service.get_logger()
    services: Dict[str, Any] = {
        'logger': logger_service,
        'repository': repository or InMemoryCaseRepository(),
        'oracles': {},
    }

    if not config.enable_oracle or not config.has_llm_credentials:
        reason = "disabled by configuration" if not config.enable_oracle else "no LLM credentials found"
        logger_service.log_warning(f"Oracle {reason}; all stages run rule-based only", "ServiceInit")
        return services

    try:
        llm_service = create_llm_service_from_config(config)
        logger_service.log_info(f"Available LLM models: {list(llm_service.list_models().keys())}", "ServiceInit")
    except ValueError as e:
        logger_service.log_error(f"Failed to initialize LLMService: {e}", "ServiceInit")
        logger_service.log_warning("Continuing without the oracle", "ServiceInit")
        return services

    for stage, role in config.model_roles.items():
        services['oracles'][stage] = build_oracle(config, logger, llm_service=llm_service, model_role=role)
        if services['oracles'][stage] is not None:
            logger_service.log_info(f"Oracle for {stage} uses the '{role}' model", "ServiceInit")
    return services


def _records(data: Dict[str, Any], key: str, case_id: str) -> List[Dict[str, Any]]:
    records = data.get(key, [])
    if not isinstance(records, list):
        raise InputValidationError(f"'{key}' must be a list", data_type=key)
    return [{"case_id": case_id, **record} for record in records]


def load_case_file(path: str, repository: CaseRepository) -> Dict[str, Any]:
    """
    Load a case JSON file into the repository.

    Entities, facts, persons, claims, alibis and guilty-knowledge records are stored
    directly; mentions, documents and the scoring context are returned as workflow
    inputs because the stages consume them.
    """
    with open(path, 'r', encoding='utf-8') as f:
        data = json.load(f)
    validate_required_fields(data, ["case_id"], operation="load_case_file")
    case_id = data["case_id"]

    repository.add_case(case_id)
    for record in _records(data, "entities", case_id):
        repository.add_entity(CanonicalEntity.from_dict(record))
    for record in _records(data, "facts", case_id):
        repository.add_fact(AtomicFact.from_dict(record))
    for record in _records(data, "persons", case_id):
        repository.add_person(PersonProfile.from_dict(record))
    for record in data.get("claims", []):
        repository.add_claim(PersonClaim.from_dict(record))
    for record in data.get("alibis", []):
        repository.add_alibi(PersonAlibi.from_dict(record))
    for record in data.get("guilty_knowledge", []):
        repository.add_guilty_knowledge(GuiltyKnowledgeIndicator.from_dict(record))

    return {
        "case_id": case_id,
        "mentions": data.get("mentions", []),
        "documents": data.get("documents", []),
        "scoring_context": data.get("scoring_context"),
    }


class CaseReasoningSystem:
    """Entity resolution, contradiction detection and suspicion scoring over one repository."""

    def __init__(self, config: PipelineConfig, repository: Optional[CaseRepository] = None):
        self.config = config
        self.logger_service = setup_logging(config)
        self.logger = self.logger_service.get_logger()
        self.services = initialize_services(config, self.logger_service, repository)
        self.repository: CaseRepository = self.services['repository']

        self.nodes = create_stage_nodes(config, self.logger, self.repository, self.services['oracles'])
        self.workflow = self._create_workflow()
        self.compiled_workflow = self.workflow.compile()
        self.logger_service.log_info("CaseReasoningSystem initialized successfully", "SystemInit")

    def _create_workflow(self) -> StateGraph:
        return create_workflow(
            config=self.config,
            logger=self.logger,
            repository=self.repository,
            nodes=self.nodes)

    @property
    def stage_agents(self) -> Dict[str, Any]:
        """The agent behind each workflow node, for direct queries and review actions."""
        return {name: node.agent for name, node in self.nodes.items()}

    def analyze_case(self, case_id: str, mentions: Optional[List[Dict[str, Any]]] = None,
                     documents: Optional[List[Dict[str, Any]]] = None,
                     scoring_context: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Run the full pipeline over a case already present in the repository."""
        self.logger_service.log_info(f"Starting case analysis for {case_id}", "AnalyzeCase")
        initial_state = CaseAnalysisState(
            case_id=case_id,
            pending_mentions=list(mentions or []),
            documents=list(documents or []),
            scoring_context=scoring_context,
        )
        try:
            final_state_dict = self.compiled_workflow.invoke(initial_state.to_dict())
        except Exception as e:
            self.logger_service.log_error(f"Workflow failed for case {case_id}: {e}", "AnalyzeCase")
            raise

        results = self._extract_results_from_dict(final_state_dict)
        self.logger_service.log_info(
            f"Case analysis for {case_id} finished with status {results['status']}", "AnalyzeCase")
        return results

    def _extract_results_from_dict(self, final_state_dict: Dict[str, Any]) -> Dict[str, Any]:
        state = CaseAnalysisState.from_dict(final_state_dict)
        if state.get_failed_stages():
            status = "FAILED"
        elif state.human_review_required:
            status = "MANUAL_REVIEW"
        else:
            status = "COMPLETED"

        return {
            "case_id": state.case_id,
            "workflow_id": state.workflow_id,
            "status": status,
            "resolved_mentions": state.resolved_mentions,
            "unresolved_mentions": state.unresolved_mentions,
            "merge_suggestions": state.merge_suggestions,
            "contradictions": state.contradiction_summary,
            "rankings": state.rankings,
            "review_reasons": state.review_reasons,
            "processing_logs": state.logs,
            "workflow_metadata": {
                **state.get_execution_summary(),
                "duration_seconds": state.get_processing_duration(),
                "errors": [entry.to_dict() for entry in state.stage_errors],
            },
        }


def create_system(enable_oracle: bool = True, log_level: Optional[str] = None) -> CaseReasoningSystem:
    overrides: Dict[str, Any] = {}
    if not enable_oracle:
        overrides["enable_oracle"] = False
    if log_level:
        overrides["logging_level"] = log_level.upper()
    return CaseReasoningSystem(PipelineConfig(**overrides))


def _print_summary(results: Dict[str, Any]) -> None:
    rankings = results.get("rankings") or {}
    contradictions = results.get("contradictions") or {}
    summary = {
        "case_id": results["case_id"],
        "status": results["status"],
        "resolved_mentions": len(results["resolved_mentions"]),
        "unresolved_mentions": len(results["unresolved_mentions"]),
        "contradictions_found": contradictions.get("total_contradictions_found", 0),
        "by_severity": contradictions.get("by_severity", {}),
        "ranking": [
            {
                "rank": s["ranking"],
                "person": s["person_name"],
                "total_score": s["total_score"],
                "priority": s["priority_level"],
            }
            for s in rankings.get("ranked_suspects", [])
        ],
        "review_reasons": results["review_reasons"],
    }
    print(json.dumps(summary, indent=2, default=str))


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Case reasoning: entity resolution, contradictions, suspicion scoring")
    parser.add_argument("case_file", help="Path to a case JSON file")
    parser.add_argument("--no-oracle", action='store_true', help="Run rule-based only")
    parser.add_argument("--log-level", help="Logging level (DEBUG, INFO, WARNING, ERROR)")
    parser.add_argument("--output", help="Output file for the full results (JSON)")
    parser.add_argument("--visualize", action='store_true', help="Show workflow structure")
    args = parser.parse_args(argv)

    try:
        system = create_system(enable_oracle=not args.no_oracle, log_level=args.log_level)

        if args.visualize:
            print(system.compiled_workflow.get_graph().draw_mermaid())
            return 0

        case = load_case_file(args.case_file, system.repository)
        results = system.analyze_case(
            case["case_id"], case["mentions"], case["documents"], case["scoring_context"])

        if args.output:
            with open(args.output, 'w', encoding='utf-8') as f:
                json.dump(results, f, indent=2, default=str)
            print(f"Results saved to {args.output}")
        _print_summary(results)
        return 1 if results["status"] == "FAILED" else 0

    except (OSError, json.JSONDecodeError) as e:
        logging.getLogger("case_reasoning").error(f"Could not read case file: {e}")
        return 1
    except (BaseCaseReasoningException, ValueError) as e:
        logging.getLogger("case_reasoning").error(f"Case analysis failed: {e}")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
