"""Pull vocabulary-shaped records out of loosely formatted model output.

Upstream models do not reliably emit strict JSON: answers arrive wrapped in
prose or markdown fences, with trailing commas, bare keys, raw newlines inside
strings, or cut off mid-array. ``ResponseExtractor.extract`` walks a cascade of
strategies and stops at the first one that yields at least one object. It never
raises; the worst case is an empty list.

The extractor over-accepts. Field contracts are enforced afterwards by
``RecordValidator``.
"""

import json
import re
from typing import Any, Callable, Optional

from precise_vocab.logger import get_logger

HEADWORD_KEYS = ("word", "headword", "term")

# Output keys of the field-by-field fallback, with the key spellings searched for each.
FIELD_PATTERNS = {
    "word": ("word", "headword", "term"),
    "definition": ("definition",),
    "example": ("example",),
    "pronunciation": ("pronunciation",),
    "category": ("category",),
    "difficultyTier": ("difficultyTier", "difficulty_tier", "difficulty"),
    "localizedMeaning": ("localizedMeaning", "localized_meaning", "traditionalChinese"),
}

PLACEHOLDER_PRONUNCIATION = "/prəˌnʌnsiˈeɪʃən/"
PLACEHOLDER_CATEGORY = "General"
PLACEHOLDER_DIFFICULTY = "Beginner"
PLACEHOLDER_MEANING = "Translation not provided"

_STRING_LITERAL = re.compile(r'"(?:\\.|[^"\\])*"')
_TRAILING_COMMA = re.compile(r",(\s*[}\]])")
_BARE_KEY = re.compile(r"([{,]\s*)([A-Za-z_][\w-]*)(\s*:)")
_CODE_FENCE = re.compile(r"```[A-Za-z]*[ \t]*")
_HEADWORD_OBJECT = re.compile(
    r'\{[^{}]*"(?:' + "|".join(HEADWORD_KEYS) + r')"\s*:[^{}]*\}', re.IGNORECASE
)


def strip_code_fences(text: str) -> str:
    """Remove markdown code fences such as ```json ... ```."""
    return _CODE_FENCE.sub("", text)


def _rewrite_segments(
    text: str,
    outside: Callable[[str], str],
    inside: Callable[[str], str],
) -> str:
    """Apply one function to string literals and another to everything between them."""
    parts = []
    last = 0
    for match in _STRING_LITERAL.finditer(text):
        parts.append(outside(text[last:match.start()]))
        parts.append(inside(match.group(0)))
        last = match.end()
    parts.append(outside(text[last:]))
    return "".join(parts)


def _repair_structure(segment: str) -> str:
    segment = _TRAILING_COMMA.sub(r"\1", segment)
    return _BARE_KEY.sub(r'\1"\2"\3', segment)


def _escape_controls(literal: str) -> str:
    return literal.replace("\r", "\\r").replace("\n", "\\n").replace("\t", "\\t")


def repair_json(text: str) -> str:
    """
    Patch the usual near-JSON defects.

    Strips code fences, drops trailing commas before ``}``/``]``, quotes bare
    object keys and escapes raw newlines and tabs inside string literals.
    Structural characters inside string values are left untouched.

    Args:
        text: Candidate JSON text

    Returns:
        Repaired text (not guaranteed to parse)
    """
    text = strip_code_fences(text)
    return _rewrite_segments(text, _repair_structure, _escape_controls)


def _loads(text: str) -> Optional[Any]:
    try:
        return json.loads(text)
    except (json.JSONDecodeError, ValueError):
        return None


def _has_headword(obj: dict) -> bool:
    return any(str(key).lower() in HEADWORD_KEYS for key in obj)


def _unescape(value: str) -> str:
    decoded = _loads(f'"{value}"')
    return decoded if isinstance(decoded, str) else value


def _pick(values: list[str], index: int, default: str) -> str:
    if index < len(values) and values[index].strip():
        return values[index]
    return default


class ResponseExtractor:
    """Turns raw model text into a list of untyped record dicts."""

    def __init__(self):
        self.logger = get_logger()
        self.strategies = [
            ("array", self._direct_array),
            ("repaired array", self._repaired_array),
            ("single object", self._single_object),
            ("object scan", self._scan_objects),
            ("field scan", self._scan_fields),
        ]

    def extract(self, raw_text: str) -> list[dict]:
        """
        Extract record dicts from a model response.

        Args:
            raw_text: Raw text returned by the generator

        Returns:
            Records from the first strategy that found any, else an empty list
        """
        if not isinstance(raw_text, str) or not raw_text.strip():
            return []

        text = raw_text.strip()
        for name, strategy in self.strategies:
            try:
                records = strategy(text)
            except (re.error, RecursionError) as e:
                self.logger.debug(f"Extraction strategy '{name}' crashed: {e}")
                continue
            if records:
                self.logger.debug(f"Extracted {len(records)} records via '{name}'")
                return records

        self.logger.warning(f"No records found in response ({len(text)} chars)")
        return []

    @staticmethod
    def _array_span(text: str) -> Optional[str]:
        start = text.find("[")
        end = text.rfind("]")
        if start == -1 or end <= start:
            return None
        return text[start:end + 1]

    @staticmethod
    def _records_from(parsed: Any) -> list[dict]:
        if not isinstance(parsed, list):
            return []
        return [item for item in parsed if isinstance(item, dict)]

    def _direct_array(self, text: str) -> list[dict]:
        span = self._array_span(text)
        if span is None:
            return []
        return self._records_from(_loads(span))

    def _repaired_array(self, text: str) -> list[dict]:
        span = self._array_span(strip_code_fences(text))
        if span is None:
            return []
        return self._records_from(_loads(repair_json(span)))

    def _single_object(self, text: str) -> list[dict]:
        start = text.find("{")
        end = text.rfind("}")
        if start == -1 or end <= start:
            return []
        span = text[start:end + 1]
        parsed = _loads(span)
        if parsed is None:
            parsed = _loads(repair_json(span))
        if isinstance(parsed, dict) and _has_headword(parsed):
            return [parsed]
        return []

    def _scan_objects(self, text: str) -> list[dict]:
        records = []
        for match in _HEADWORD_OBJECT.finditer(text):
            parsed = _loads(repair_json(match.group(0)))
            if isinstance(parsed, dict):
                records.append(parsed)
        return records

    def _scan_fields(self, text: str) -> list[dict]:
        columns = {}
        for field, keys in FIELD_PATTERNS.items():
            pattern = re.compile(
                r'"(?:' + "|".join(map(re.escape, keys)) + r')"\s*:\s*"((?:\\.|[^"\\])*)"',
                re.IGNORECASE,
            )
            columns[field] = [_unescape(m.group(1)) for m in pattern.finditer(text)]

        words = columns["word"]
        if not words:
            return []

        size = max(len(values) for values in columns.values())
        records = []
        for i in range(size):
            word = _pick(columns["word"], i, f"Word {i + 1}")
            records.append(
                {
                    "word": word,
                    "definition": _pick(columns["definition"], i, f"Definition for {word}"),
                    "example": _pick(columns["example"], i, f"Example sentence for {word}"),
                    "pronunciation": _pick(columns["pronunciation"], i, PLACEHOLDER_PRONUNCIATION),
                    "category": _pick(columns["category"], i, PLACEHOLDER_CATEGORY),
                    "difficultyTier": _pick(columns["difficultyTier"], i, PLACEHOLDER_DIFFICULTY),
                    "localizedMeaning": _pick(columns["localizedMeaning"], i, PLACEHOLDER_MEANING),
                }
            )
        self.logger.warning(f"Salvaged {len(records)} records field by field")
        return records
