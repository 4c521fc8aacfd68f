# case_reasoning/utils/similarity.py

from typing import Dict

from case_reasoning.config.constants import SOUNDEX_CODES


def levenshtein_distance(text1: str, text2: str) -> int:
    """Classic edit distance (insert, delete, substitute all cost 1)."""
    if text1 == text2:
        return 0
    if not text1:
        return len(text2)
    if not text2:
        return len(text1)

    previous_row = list(range(len(text2) + 1))
    for i, char1 in enumerate(text1, start=1):
        current_row = [i]
        for j, char2 in enumerate(text2, start=1):
            cost = 0 if char1 == char2 else 1
            current_row.append(min(
                previous_row[j] + 1,
                current_row[j - 1] + 1,
                previous_row[j - 1] + cost,
            ))
        previous_row = current_row
    return previous_row[-1]


def normalized_similarity(text1: str, text2: str) -> float:
    """1 - distance / max length. Identical strings score 1.0, an empty side scores 0.0."""
    if text1 == text2:
        return 1.0
    if not text1 or not text2:
        return 0.0
    max_len = max(len(text1), len(text2))
    return 1.0 - levenshtein_distance(text1, text2) / max_len


def soundex(text: str, codes: Dict[str, str] = SOUNDEX_CODES) -> str:
    """
    Four character Soundex code.

    The first letter is kept, consonants map to digit classes and vowels (and H, W, Y)
    are dropped without breaking a run of identical codes, so "Stephen" and "Steven"
    both become S315. Returns an empty string when the input holds no letters.
    """
    letters = "".join(ch for ch in text.upper() if "A" <= ch <= "Z")
    if not letters:
        return ""

    result = letters[0]
    prev_code = codes.get(letters[0], "")
    for ch in letters[1:]:
        if len(result) >= 4:
            break
        code = codes.get(ch, "")
        if code and code != prev_code:
            result += code
        prev_code = code or prev_code

    return result.ljust(4, "0")


def phonetic_match(text1: str, text2: str) -> bool:
    code1 = soundex(text1)
    return bool(code1) and code1 == soundex(text2)
