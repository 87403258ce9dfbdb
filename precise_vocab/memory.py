"""Per-run accumulator of generated vocabulary."""

from typing import Iterable

from precise_vocab.models import MemorySnapshot, VocabularyRecord


def count_words(text: str) -> int:
    """Number of whitespace-delimited tokens in ``text``."""
    if not text or not text.strip():
        return 0
    return len(text.split())


def count_record_words(records: Iterable[VocabularyRecord]) -> int:
    """Sum of headword, definition and example token counts."""
    return sum(
        count_words(r.headword) + count_words(r.definition) + count_words(r.example)
        for r in records
    )


class GenerationMemory:
    """
    Records collected so far in one orchestrator run.

    Progress is measured in tokens, not items: ``word_count`` is the token
    count of every record's headword, definition and example. It is always
    recomputed from ``records``.

    Owned by a single run. ``history`` is append-only, so a status reader may
    look at it while the run is still writing.
    """

    def __init__(self, target_word_count: int):
        if target_word_count < 0:
            raise ValueError(f"target_word_count must be >= 0, got {target_word_count}")
        self.target_word_count = target_word_count
        self.records: list[VocabularyRecord] = []
        self.word_count = 0
        self.history: list[str] = []
        self._seen: set[str] = set()

    def append(self, records: Iterable[VocabularyRecord]) -> list[VocabularyRecord]:
        """
        Merge a batch, skipping headwords already held (case-insensitive).

        Args:
            records: Validated candidates from one batch

        Returns:
            The records that were actually added
        """
        added = []
        for record in records:
            if record.key in self._seen:
                continue
            self._seen.add(record.key)
            self.records.append(record)
            added.append(record)

        self.word_count = count_record_words(self.records)
        return added

    def contains(self, headword: str) -> bool:
        return headword.lower() in self._seen

    def remaining_count(self) -> int:
        return max(0, self.target_word_count - self.word_count)

    def is_complete(self) -> bool:
        return self.word_count >= self.target_word_count

    def log_event(self, text: str) -> None:
        self.history.append(text)

    def headwords(self) -> list[str]:
        return [r.headword for r in self.records]

    def snapshot(self) -> MemorySnapshot:
        """Copy of the current state, safe to hand to callers."""
        return MemorySnapshot(
            records=list(self.records),
            word_count=self.word_count,
            target_word_count=self.target_word_count,
            history=list(self.history),
        )

    def export(self) -> dict:
        """Snapshot plus a plain headword list, for debugging."""
        data = self.snapshot().model_dump()
        data["word_list"] = self.headwords()
        return data
