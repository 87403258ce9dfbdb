"""Field and enum checks for extracted vocabulary records."""

from typing import Any, Iterable, Optional

from precise_vocab.logger import get_logger
from precise_vocab.models import DifficultyTier, VocabularyRecord

# Record field -> accepted key spellings, normalized (lower case, no "_"/"-"/spaces).
FIELD_ALIASES = {
    "headword": ("word", "headword", "term"),
    "definition": ("definition", "meaning"),
    "example": ("example", "examplesentence", "sentence"),
    "pronunciation": ("pronunciation", "phonetic", "ipa"),
    "category": ("category", "partofspeech", "pos"),
    "difficulty_tier": ("difficultytier", "difficulty", "level"),
    "localized_meaning": ("localizedmeaning", "traditionalchinese", "translation"),
}

VALID_TIERS = {tier.value for tier in DifficultyTier}


def normalize_key(key: Any) -> str:
    """Lower-case a key and drop separators so "Word", "WORD" and "word" compare equal."""
    return "".join(ch for ch in str(key).lower() if ch not in "_- ")


def lookup_field(raw: dict, field: str) -> Any:
    """Return the first value stored under any alias of ``field``, or None."""
    normalized = {normalize_key(key): value for key, value in raw.items()}
    for alias in FIELD_ALIASES[field]:
        if alias in normalized:
            return normalized[alias]
    return None


class RecordValidator:
    """Enforces the vocabulary record contract, dropping anything that breaks it."""

    def __init__(self):
        self.logger = get_logger()

    def validate(self, raw: Any) -> Optional[VocabularyRecord]:
        """
        Validate one raw record.

        Every field must be present as a non-empty string and the difficulty
        tier must be one of the four literal tier names.

        Args:
            raw: Untyped record produced by the extractor

        Returns:
            VocabularyRecord, or None if the record is invalid
        """
        if not isinstance(raw, dict):
            self.logger.debug(f"Dropping non-object record: {raw!r}")
            return None

        values = {}
        for field in FIELD_ALIASES:
            value = lookup_field(raw, field)
            if not isinstance(value, str) or not value.strip():
                self.logger.debug(f"Dropping record, missing or empty field '{field}': {raw}")
                return None
            values[field] = value.strip()

        if values["difficulty_tier"] not in VALID_TIERS:
            self.logger.debug(f"Dropping record, invalid difficulty: {values['difficulty_tier']}")
            return None

        return VocabularyRecord(**values)

    def validate_all(self, raws: Iterable[Any]) -> list[VocabularyRecord]:
        """Validate a batch, keeping only the records that pass."""
        raws = list(raws)
        valid = [record for record in map(self.validate, raws) if record is not None]
        if len(valid) < len(raws):
            self.logger.info(f"  Dropped {len(raws) - len(valid)}/{len(raws)} invalid records")
        return valid
