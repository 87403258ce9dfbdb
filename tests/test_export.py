from __future__ import annotations

from precise_vocab.export import (
    CSV_COLUMNS,
    load_records_csv,
    load_responses,
    save_records_csv,
    save_responses,
)
from precise_vocab.models import (
    GenerationStats,
    ResponseData,
    ResponseMetadata,
    VocabularyApiResponse,
    VocabularyRecord,
)


def make_record(headword: str) -> VocabularyRecord:
    return VocabularyRecord(
        headword=headword,
        definition="present everywhere",
        example="Smartphones are ubiquitous.",
        pronunciation="/juːˈbɪkwɪtəs/",
        category="adjective",
        difficulty_tier="Advanced",
        localized_meaning="無所不在的",
    )


def test_csv_export_column_order(tmp_path):
    path = tmp_path / "nested" / "words.csv"

    df = save_records_csv([make_record("ubiquitous"), make_record("ephemeral")], path)

    assert list(df.columns) == CSV_COLUMNS
    assert path.read_text(encoding="utf-8").splitlines()[0] == ",".join(CSV_COLUMNS)
    assert load_records_csv(path) == [make_record("ubiquitous"), make_record("ephemeral")]


def test_responses_are_saved_as_readable_json(tmp_path):
    path = tmp_path / "out.json"
    response = VocabularyApiResponse(
        success=True,
        data=ResponseData(
            vocabulary=[make_record("ubiquitous")],
            stats=GenerationStats(word_count=6, target_word_count=5, item_count=1, is_complete=True),
            metadata=ResponseMetadata(timestamp="2026-01-01T00:00:00+00:00", request_id="r1", processing_time_ms=12),
        ),
    )

    save_responses([response], path)

    assert "無所不在的" in path.read_text(encoding="utf-8")
    assert load_responses(path) == [response]


def test_missing_response_file_loads_empty(tmp_path):
    assert load_responses(tmp_path / "absent.json") == []
