# case_reasoning/agents/entity_resolution/agent.py
import logging
import re
from typing import List, Optional, Dict, Tuple, Iterable, Any

from case_reasoning.agents.entity_resolution.prompts import build_candidate_choice_prompt
from case_reasoning.config.constants import (
    NAME_PATTERNS, NON_NAME_WORDS, MENTION_CONTEXT_WINDOW, MENTION_SENTENCE_LIMIT
)
from case_reasoning.config.settings import EntityResolutionConfig
from case_reasoning.core.base_agent import BaseOracleAgent
from case_reasoning.core.exceptions import (
    EngineConfigurationError, EntityNotFoundError, SelfMergeError, CrossCaseMergeError,
    OracleResponseError, ErrorSeverity
)
from case_reasoning.core.state import CaseAnalysisState
from case_reasoning.models.entity import (
    CanonicalEntity, EntityMention, ResolvedMatch, UnresolvedMention, ResolutionResult, MergeSuggestion
)
from case_reasoning.models.enums import EntityType, EntityRole, AliasType, MatchType
from case_reasoning.models.oracle import parse_oracle_choice
from case_reasoning.services.oracle import InferenceOracle
from case_reasoning.services.repository import CaseRepository
from case_reasoning.utils.similarity import normalized_similarity, phonetic_match, soundex
from case_reasoning.utils.text_processing import clean_entity_name, infer_role

_NAME_REGEXES = [re.compile(pattern) for pattern in NAME_PATTERNS]


class EntityResolutionAgent(BaseOracleAgent):
    """
    Ties raw name mentions to canonical entities.

    Matching runs exact alias lookup, then fuzzy (edit distance) and phonetic
    (Soundex) candidate generation, then an optional oracle tie-break. Anything
    that does not reach the auto-merge threshold comes back as an
    UnresolvedMention for a reviewer instead of being guessed.
    """

    def __init__(self, config: EntityResolutionConfig, logger: logging.Logger,
                 repository: CaseRepository, oracle: Optional[InferenceOracle] = None):
        if not isinstance(config, EntityResolutionConfig):
            raise EngineConfigurationError(
                f"Config must be an instance of EntityResolutionConfig, got {type(config)}.",
                config_key="entity_resolution_config_type",
                severity=ErrorSeverity.CRITICAL
            )
        super().__init__(config, logger, oracle=oracle)
        self.er_config: EntityResolutionConfig = config
        self.repository = repository
        self.logger.info(f"EntityResolutionAgent initialized (oracle={'on' if self.oracle_available else 'off'})")

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def resolve(self, case_id: str, mention_text: str, context: str = "",
                document_id: Optional[str] = None) -> ResolutionResult:
        """
        Resolve one mention. A ResolvedMatch also records the mention against the
        entity; an UnresolvedMention changes nothing.
        """
        self.repository.require_case(case_id)
        cleaned = clean_entity_name(mention_text)

        exact = self._find_exact_match(case_id, cleaned)
        if exact is not None:
            self.record_mention(exact.canonical_entity_id, document_id, mention_text, context,
                                confidence=exact.confidence, match_type=exact.match_type)
            return exact

        candidates = self._find_fuzzy_matches(case_id, cleaned)
        if self.er_config.phonetic_matching:
            candidates.extend(self._find_phonetic_matches(case_id, cleaned))
        candidates = self._deduplicate(candidates)

        best = candidates[0] if candidates else None
        if best is not None and best.confidence >= self.er_config.auto_merge_threshold:
            self.record_mention(best.canonical_entity_id, document_id, mention_text, context,
                                confidence=best.confidence, match_type=best.match_type)
            return best

        if best is not None:
            picked = self._resolve_with_oracle(mention_text, context, candidates)
            if picked is not None and picked.confidence > best.confidence:
                self.record_mention(picked.canonical_entity_id, document_id, mention_text, context,
                                    confidence=picked.confidence, match_type=picked.match_type)
                return picked

        needs_review = len(candidates) > 1 or (
            best is not None and best.confidence < self.er_config.human_review_threshold)
        return UnresolvedMention(
            mention_text=mention_text,
            document_id=document_id or "",
            context=context,
            potential_matches=candidates,
            needs_human_review=needs_review,
            suggested_canonical_name=cleaned,
            suggested_role=EntityRole(infer_role(context)),
        )

    def resolve_many(self, case_id: str, mentions: Iterable[Dict[str, Any]]) -> List[ResolutionResult]:
        """Resolve a batch of {"mention_text", "context", "document_id"} records in order."""
        return [
            self.resolve(case_id, m["mention_text"], m.get("context", ""), m.get("document_id"))
            for m in mentions
        ]

    def extract_entities_from_text(self, case_id: str, text: str,
                                   document_id: Optional[str] = None
                                   ) -> Tuple[List[ResolvedMatch], List[UnresolvedMention]]:
        """Find capitalised name candidates in free text and resolve each distinct one once."""
        found: Dict[str, Tuple[str, str]] = {}
        for regex in _NAME_REGEXES:
            for match in regex.finditer(text):
                name = clean_entity_name(match.group(1) or match.group(0))
                if self._is_common_non_name(name):
                    continue
                key = name.lower()
                if key in found:
                    continue
                start = max(0, match.start() - MENTION_CONTEXT_WINDOW)
                end = min(len(text), match.end() + MENTION_CONTEXT_WINDOW)
                found[key] = (name, text[start:end])

        resolved, unresolved = [], []
        for name, context in found.values():
            result = self.resolve(case_id, name, context, document_id)
            if isinstance(result, ResolvedMatch):
                resolved.append(result)
            else:
                unresolved.append(result)
        self.logger.debug(
            f"[{self.agent_name}] Extracted {len(found)} names from document {document_id}: "
            f"{len(resolved)} resolved, {len(unresolved)} unresolved")
        return resolved, unresolved

    @staticmethod
    def _is_common_non_name(name: str) -> bool:
        if len(name) < 3:
            return True
        return all(word.lower() in NON_NAME_WORDS for word in name.split())

    def _find_exact_match(self, case_id: str, cleaned: str) -> Optional[ResolvedMatch]:
        entity = self.repository.find_entity_by_alias(case_id, cleaned)
        if entity is None:
            return None
        return ResolvedMatch(
            canonical_entity_id=entity.id,
            canonical_name=entity.canonical_name,
            confidence=1.0,
            match_type=MatchType.EXACT,
            matched_on=cleaned.lower(),
        )

    def _find_fuzzy_matches(self, case_id: str, cleaned: str) -> List[ResolvedMatch]:
        needle = cleaned.lower()
        matches = []
        for entity, alias in self.repository.list_aliases(case_id):
            similarity = normalized_similarity(needle, alias.alias_value)
            if similarity >= self.er_config.fuzzy_threshold:
                matches.append(ResolvedMatch(
                    canonical_entity_id=entity.id,
                    canonical_name=entity.canonical_name,
                    confidence=similarity,
                    match_type=MatchType.FUZZY,
                    matched_on=alias.alias_value,
                ))
        return matches

    def _find_phonetic_matches(self, case_id: str, cleaned: str) -> List[ResolvedMatch]:
        code = soundex(cleaned)
        if not code:
            return []
        return [
            ResolvedMatch(
                canonical_entity_id=entity.id,
                canonical_name=entity.canonical_name,
                confidence=self.er_config.phonetic_confidence,
                match_type=MatchType.PHONETIC,
                matched_on=code,
            )
            for entity in self.repository.list_entities(case_id, EntityType.PERSON)
            if soundex(entity.canonical_name) == code
        ]

    @staticmethod
    def _deduplicate(matches: List[ResolvedMatch]) -> List[ResolvedMatch]:
        """One candidate per entity (highest confidence), best first."""
        best: Dict[str, ResolvedMatch] = {}
        for match in matches:
            current = best.get(match.canonical_entity_id)
            if current is None or match.confidence > current.confidence:
                best[match.canonical_entity_id] = match
        return sorted(best.values(), key=lambda m: m.confidence, reverse=True)

    def _resolve_with_oracle(self, mention_text: str, context: str,
                             candidates: List[ResolvedMatch]) -> Optional[ResolvedMatch]:
        prompt = build_candidate_choice_prompt(mention_text, context, candidates)
        reply = self._consult_oracle(prompt, purpose="entity tie-break")
        if reply is None:
            return None
        try:
            choice = parse_oracle_choice(reply, len(candidates))
        except OracleResponseError as e:
            self._record_oracle_rejection("entity tie-break", e)
            return None
        if choice.is_none:
            return None

        chosen = candidates[choice.index]
        confidence = min(chosen.confidence + self.er_config.oracle_confidence_boost,
                         self.er_config.oracle_confidence_ceiling)
        return ResolvedMatch(
            canonical_entity_id=chosen.canonical_entity_id,
            canonical_name=chosen.canonical_name,
            confidence=confidence,
            match_type=MatchType.AI,
            matched_on=chosen.matched_on,
        )

    # ------------------------------------------------------------------
    # Entity lifecycle
    # ------------------------------------------------------------------

    def create_entity(self, case_id: str, canonical_name: str,
                      entity_type: EntityType = EntityType.PERSON,
                      role: EntityRole = EntityRole.UNKNOWN,
                      aliases: Optional[List[str]] = None,
                      description: str = "",
                      metadata: Optional[Dict[str, Any]] = None) -> CanonicalEntity:
        """Create a canonical entity; its name becomes a full_name alias, extra aliases are nicknames."""
        entity = CanonicalEntity(
            case_id=case_id,
            canonical_name=canonical_name,
            entity_type=entity_type,
            role=role,
            description=description,
            metadata=metadata or {},
        )
        for alias in aliases or []:
            entity.add_alias(alias, AliasType.NICKNAME)
        self.repository.add_entity(entity)
        self.logger.info(f"[{self.agent_name}] Created entity '{canonical_name}' ({entity.id}) in case {case_id}")
        return entity

    def record_mention(self, entity_id: str, document_id: Optional[str], mention_text: str,
                       context: str = "", confidence: float = 1.0,
                       match_type: MatchType = MatchType.EXACT,
                       page_number: Optional[int] = None) -> EntityMention:
        """Store the mention and bump the entity's counters inside its critical section."""
        index = context.find(mention_text) if mention_text else -1
        before = context[:index].strip() if index > 0 else ""
        after = context[index + len(mention_text):].strip() if index >= 0 else ""

        with self.repository.entity_lock(entity_id):
            entity = self.repository.get_entity(entity_id)
            mention = EntityMention(
                entity_id=entity.id,
                document_id=document_id or "",
                mention_text=mention_text,
                context_before=before[-MENTION_CONTEXT_WINDOW:],
                context_after=after[:MENTION_CONTEXT_WINDOW],
                full_sentence=context[:MENTION_SENTENCE_LIMIT],
                page_number=page_number,
                confidence=confidence,
                match_type=match_type,
            )
            self.repository.add_mention(mention)
            entity.register_mention(document_id)
        return mention

    def merge(self, case_id: str, primary_id: str, secondary_id: str,
              verified_by: Optional[str] = None) -> CanonicalEntity:
        """
        Fold `secondary_id` into `primary_id`. Every check happens before anything is
        touched; on success the secondary entity no longer exists.
        """
        if primary_id == secondary_id:
            raise SelfMergeError(primary_id, agent_name=self.agent_name)

        with self.repository.entity_lock(primary_id, secondary_id):
            primary = self.repository.get_entity(primary_id)
            secondary = self.repository.get_entity(secondary_id)
            if primary.case_id != secondary.case_id:
                raise CrossCaseMergeError(primary_id, secondary_id, agent_name=self.agent_name)
            if primary.case_id != case_id:
                raise EntityNotFoundError(primary_id, context={"case_id": case_id})

            primary.absorb(secondary, verified_by=verified_by)
            moved = self.repository.relink_mentions(secondary.id, primary.id)
            for profile in self.repository.list_persons(case_id):
                if profile.entity_id == secondary.id:
                    profile.entity_id = primary.id
            self.repository.delete_entity(secondary.id)

        self.logger.info(
            f"[{self.agent_name}] Merged '{secondary.canonical_name}' into '{primary.canonical_name}' "
            f"({moved} mentions moved)")
        return primary

    def merge_suggestions(self, case_id: str, limit: Optional[int] = None) -> List[MergeSuggestion]:
        """Pairwise look over person entities for likely duplicates. Never applied automatically."""
        limit = limit if limit is not None else self.er_config.merge_suggestion_limit
        entities = self.repository.list_entities(case_id, EntityType.PERSON)
        suggestions = []

        for i in range(len(entities)):
            for j in range(i + 1, len(entities)):
                first, second = entities[i], entities[j]
                if first.id == second.id:
                    continue
                confidence = normalized_similarity(first.canonical_name.lower(), second.canonical_name.lower())
                reason = "Name similarity"

                if set(first.alias_values) & set(second.alias_values):
                    confidence = max(confidence, self.er_config.shared_alias_confidence)
                    reason = "Shared alias"

                if (phonetic_match(first.canonical_name, second.canonical_name)
                        and confidence > self.er_config.phonetic_suggestion_floor):
                    confidence = min(confidence + self.er_config.phonetic_suggestion_boost, 1.0)
                    reason = "Phonetic match"

                if confidence >= self.er_config.merge_suggestion_threshold:
                    suggestions.append(MergeSuggestion(first, second, confidence, reason))

        suggestions.sort(key=lambda s: s.confidence, reverse=True)
        return suggestions[:limit]

    def get_case_entities(self, case_id: str, entity_type: Optional[EntityType] = None,
                          role: Optional[EntityRole] = None,
                          min_mentions: Optional[int] = None) -> List[CanonicalEntity]:
        entities = [
            e for e in self.repository.list_entities(case_id, entity_type)
            if (role is None or e.role == role)
            and (min_mentions is None or e.mention_count >= min_mentions)
        ]
        return sorted(entities, key=lambda e: e.mention_count, reverse=True)

    # ------------------------------------------------------------------
    # Pipeline stage
    # ------------------------------------------------------------------

    def _settle(self, case_id: str, result: ResolutionResult) -> ResolutionResult:
        """A mention with no candidate at all starts a new entity when auto-creation is on."""
        if (isinstance(result, ResolvedMatch) or result.potential_matches
                or not self.er_config.auto_create_unmatched or not result.suggested_canonical_name):
            return result
        entity = self.create_entity(case_id, result.suggested_canonical_name, role=result.suggested_role)
        self.record_mention(entity.id, result.document_id, result.mention_text, result.context)
        return ResolvedMatch(
            canonical_entity_id=entity.id,
            canonical_name=entity.canonical_name,
            confidence=1.0,
            match_type=MatchType.EXACT,
            matched_on=result.suggested_canonical_name.lower(),
        )

    def _resolve_pending(self, case_id: str, mention: Dict[str, Any]) -> ResolutionResult:
        result = self.resolve(case_id, mention["mention_text"], mention.get("context", ""),
                              mention.get("document_id"))
        return self._settle(case_id, result)

    def _run_implementation(self, state: CaseAnalysisState) -> CaseAnalysisState:
        case_id = state.case_id
        self.repository.require_case(case_id)
        results: List[ResolutionResult] = []

        for mention in state.pending_mentions:
            result = self._safe_process_item(
                lambda m: self._resolve_pending(case_id, m), state, mention,
                item_id=mention.get("mention_text"))
            if result is not None:
                results.append(result)

        for document in state.documents:
            extracted = self._safe_process_item(
                lambda d: self.extract_entities_from_text(case_id, d.get("text", ""), d.get("document_id")),
                state, document, item_id=document.get("document_id"))
            if extracted is None:
                continue
            resolved, unresolved = extracted
            results.extend(resolved)
            results.extend(self._settle(case_id, u) for u in unresolved)

        state.resolved_mentions = [r.to_dict() for r in results if isinstance(r, ResolvedMatch)]
        unresolved = [r for r in results if isinstance(r, UnresolvedMention)]
        state.unresolved_mentions = [u.to_dict() for u in unresolved]
        state.merge_suggestions = [s.to_dict() for s in self.merge_suggestions(case_id)]

        review_count = sum(1 for u in unresolved if u.needs_human_review)
        if review_count:
            state.set_review_required(f"{review_count} mentions need human review", self.agent_name)

        self._update_agent_status(
            state,
            f"Resolved {len(state.resolved_mentions)} mentions, {len(unresolved)} unresolved, "
            f"{len(state.merge_suggestions)} merge suggestions")
        return state
