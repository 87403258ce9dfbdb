"""Saving and loading generated vocabulary."""

import json
from pathlib import Path

import pandas as pd

from precise_vocab.models import VocabularyApiResponse, VocabularyRecord

CSV_COLUMNS = [
    "headword",
    "pronunciation",
    "definition",
    "example",
    "localized_meaning",
    "category",
    "difficulty_tier",
]


def save_responses(responses: list[VocabularyApiResponse], path: Path) -> None:
    """Save service responses to JSON."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump([r.model_dump(mode="json") for r in responses], f, ensure_ascii=False, indent=2)


def load_responses(path: Path) -> list[VocabularyApiResponse]:
    """Load previously saved service responses from JSON."""
    if not path.exists():
        return []
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    return [VocabularyApiResponse(**item) for item in data]


def save_records_csv(records: list[VocabularyRecord], path: Path) -> pd.DataFrame:
    """
    Export records to CSV in flashcard-import column order.

    Args:
        records: Records to export
        path: Destination CSV file

    Returns:
        The exported DataFrame
    """
    df = pd.DataFrame([r.model_dump(mode="json") for r in records], columns=CSV_COLUMNS)
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=False, encoding="utf-8")
    return df


def load_records_csv(path: Path) -> list[VocabularyRecord]:
    """Load records previously exported with ``save_records_csv``."""
    df = pd.read_csv(path, dtype=str, keep_default_na=False)
    return [VocabularyRecord(**row) for row in df.to_dict(orient="records")]
