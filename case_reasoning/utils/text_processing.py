# case_reasoning/utils/text_processing.py

import json
import re
from typing import Any, Iterable, Optional

from case_reasoning.config.constants import HONORIFIC_PATTERN, ROLE_PATTERNS

_HONORIFIC_RE = re.compile(HONORIFIC_PATTERN, re.IGNORECASE)
_JSON_OBJECT_RE = re.compile(r"\{[\s\S]*\}")


def clean_entity_name(name: str) -> str:
    """Strip a leading honorific and collapse whitespace."""
    cleaned = _HONORIFIC_RE.sub("", name.strip())
    return re.sub(r"\s+", " ", cleaned).strip()


def infer_role(context: str) -> str:
    """Guess an entity role from the words around a mention."""
    lowered = (context or "").lower()
    for role, pattern in ROLE_PATTERNS:
        if re.search(pattern, lowered):
            return role
    return "unknown"


def safe_json_parse(json_str: str, default=None):
    """Safely parse a JSON string, returning a default value on failure."""
    try:
        return json.loads(json_str)
    except (json.JSONDecodeError, TypeError):
        return default


def extract_json_object(text: Optional[str]) -> Optional[Any]:
    """Pull the outermost {...} block out of free text and parse it. None if absent or invalid."""
    if not text:
        return None
    match = _JSON_OBJECT_RE.search(text)
    if not match:
        return None
    parsed = safe_json_parse(match.group(0), default=None)
    return parsed if isinstance(parsed, dict) else None


def alnum_key(text: Optional[str]) -> str:
    return re.sub(r"[^a-z0-9]", "", (text or "").lower())


def contains_word(text: str, word: str) -> bool:
    """Whole-word (or whole-phrase) containment, case-insensitive."""
    return re.search(rf"\b{re.escape(word)}\b", text, re.IGNORECASE) is not None


def affirms(text: str, word: str) -> bool:
    """True when `word` appears without being immediately negated ("did" but not "didn't"/"did not")."""
    pattern = rf"\b{re.escape(word)}\b(?!n't|\s+not\b)"
    return re.search(pattern, text, re.IGNORECASE) is not None


def contains_any(text: str, keywords: Iterable[str]) -> bool:
    """Plain substring check against a keyword list, case-insensitive."""
    lowered = (text or "").lower()
    return any(keyword in lowered for keyword in keywords)
