"""
Local text analysis.

Deterministic, dependency-free helpers used whenever the remote model is not
available: no API key, offline mode, or a failed request.
"""

import re
from typing import List

# Sentence-ending punctuation followed by whitespace
_SENTENCE_SPLIT = re.compile(r"[.!?]+\s+")
# Runs of anything that is not a letter or a digit (str patterns are Unicode-aware)
_NON_WORD = re.compile(r"[\W_]+")

MAX_KEYWORDS = 6
MAX_RESPONSE_KEYWORDS = 5


def summarize_local(text: str) -> str:
    """Returns the first two sentences of the text as a short summary."""
    if not text or not text.strip():
        return ""

    sentences = []
    for sentence in _SENTENCE_SPLIT.split(text.strip()):
        cleaned = sentence.strip().rstrip(".!?").strip()
        if cleaned:
            sentences.append(cleaned)
        if len(sentences) == 2:
            break

    if not sentences:
        return ""
    return ". ".join(sentences) + "."


def _unique_tokens(text: str, min_length: int) -> List[str]:
    seen = set()
    tokens = []
    for token in _NON_WORD.split(text):
        if len(token) > min_length and token not in seen:
            seen.add(token)
            tokens.append(token)
    return tokens


def extract_keywords_local(text: str, limit: int = MAX_KEYWORDS) -> List[str]:
    """
    Extracts a deduplicated keyword list from raw text.

    Tokens are lowercased, must be longer than 3 characters and keep the order
    in which they first appear.
    """
    if not text:
        return []
    return _unique_tokens(text.lower(), 3)[:limit]


def keywords_from_response(content: str, limit: int = MAX_RESPONSE_KEYWORDS) -> List[str]:
    """Salvages topic candidates from a model answer that was not valid JSON."""
    if not content:
        return []
    return _unique_tokens(content, 4)[:limit]
