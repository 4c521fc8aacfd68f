# case_reasoning/agents/entity_resolution/prompts.py
from typing import List

from case_reasoning.models.entity import ResolvedMatch


def build_candidate_choice_prompt(mention_text: str, context: str, candidates: List[ResolvedMatch]) -> str:
    """Numbered candidate list; the oracle answers with one number, or 0 for none."""
    match_descriptions = "\n".join(
        f'{i}. "{candidate.canonical_name}" (confidence: {candidate.confidence * 100:.0f}%)'
        for i, candidate in enumerate(candidates, start=1)
    )
    return f"""You are helping resolve entity mentions in a criminal investigation case file.

The mention text is: "{mention_text}"

Context from the document:
"{context}"

Potential matches:
{match_descriptions}

Based on the context, which person does this mention most likely refer to? Respond with ONLY the number of the best match, or 0 if none of them match. Do not explain."""
