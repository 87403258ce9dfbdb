"""Multi-batch generation loop that accumulates vocabulary up to a word target."""

import asyncio
import contextlib
from enum import Enum
from typing import Callable, Optional

import config
from precise_vocab.extractor import ResponseExtractor
from precise_vocab.generation_client import (
    ConfigurationError,
    EmptyResponseError,
    GenerationCancelledError,
    TextGenerator,
    TransportError,
)
from precise_vocab.logger import get_logger
from precise_vocab.memory import GenerationMemory
from precise_vocab.models import (
    GenerationOptions,
    GenerationRequest,
    GenerationResult,
    GenerationStats,
    MemorySnapshot,
    RunState,
    VocabularyRecord,
)
from precise_vocab.prompts import PromptComposer, requested_count
from precise_vocab.validator import RecordValidator

ProgressCallback = Callable[[int, int], None]


class CancelMode(str, Enum):
    """What a fired cancel event does to a run."""

    GRACEFUL = "graceful"  # counts as a transport failure, run ends exhausted
    HARD = "hard"  # raises GenerationCancelledError


class BatchOrchestrator:
    """
    Requests batches until the memory reaches its word target.

    Each iteration composes a prompt from the current memory, calls the
    generator, extracts and validates records and merges the unique ones.
    Batches run strictly one after another because every prompt carries the
    headwords collected so far.

    A transport failure or a batch that adds nothing counts as a failed
    attempt; after ``max_retries`` consecutive failed attempts the run stops
    in the ``EXHAUSTED`` state and returns what it has. Upstream noise never
    raises. Only a missing generator (``ConfigurationError``) or a hard
    cancellation does.

    One instance serves one run at a time; use separate instances for
    concurrent runs.
    """

    def __init__(
        self,
        generator: Optional[TextGenerator],
        composer: Optional[PromptComposer] = None,
        extractor: Optional[ResponseExtractor] = None,
        validator: Optional[RecordValidator] = None,
        options: Optional[GenerationOptions] = None,
        max_retries: int = config.MAX_RETRIES,
        backoff_seconds: float = config.RETRY_BACKOFF_SECONDS,
        cancel_mode: CancelMode = CancelMode.GRACEFUL,
        on_progress: Optional[ProgressCallback] = None,
    ):
        if max_retries < 1:
            raise ValueError(f"max_retries must be >= 1, got {max_retries}")
        self.generator = generator
        self.composer = composer or PromptComposer()
        self.extractor = extractor or ResponseExtractor()
        self.validator = validator or RecordValidator()
        self.options = options or GenerationOptions()
        self.max_retries = max_retries
        self.backoff_seconds = backoff_seconds
        self.cancel_mode = cancel_mode
        self.on_progress = on_progress
        self.logger = get_logger()

        self.memory: Optional[GenerationMemory] = None
        self.state = RunState.RUNNING
        self.batches_attempted = 0

    def _check_configured(self) -> None:
        if self.generator is None:
            raise ConfigurationError("No text generator configured")
        is_configured = getattr(self.generator, "is_configured", None)
        if callable(is_configured) and not is_configured():
            raise ConfigurationError(f"{type(self.generator).__name__} is not configured")

    async def _call_generator(self, prompt: str, cancel_event: Optional[asyncio.Event]) -> str:
        if cancel_event is None:
            return await self.generator.generate_text(prompt, self.options)

        if cancel_event.is_set():
            raise self._cancelled()

        call = asyncio.ensure_future(self.generator.generate_text(prompt, self.options))
        waiter = asyncio.ensure_future(cancel_event.wait())
        try:
            await asyncio.wait({call, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (call, waiter):
                if not task.done():
                    task.cancel()
                    with contextlib.suppress(asyncio.CancelledError):
                        await task

        if call.done() and not call.cancelled():
            return call.result()
        raise self._cancelled()

    def _cancelled(self) -> Exception:
        if self.cancel_mode == CancelMode.HARD:
            return GenerationCancelledError("Generation cancelled by caller")
        return TransportError("Generation call cancelled")

    def _report_progress(self) -> None:
        if self.on_progress is not None:
            self.on_progress(self.memory.word_count, self.memory.target_word_count)

    async def run(
        self,
        request: GenerationRequest,
        target_word_count: int = config.DEFAULT_TARGET_WORD_COUNT,
        cancel_event: Optional[asyncio.Event] = None,
        max_items: Optional[int] = None,
    ) -> list[VocabularyRecord]:
        """
        Generate vocabulary until ``target_word_count`` tokens are collected.

        Args:
            request: Free-text or persona request; not modified
            target_word_count: Completion threshold in whitespace tokens
                summed over headword, definition and example of every record
            cancel_event: Optional event that cancels the in-flight call
            max_items: Optional ceiling on the number of records returned

        Returns:
            Unique records in discovery order (possibly partial)

        Raises:
            ConfigurationError: If no usable generator is configured
            GenerationCancelledError: If cancelled in ``CancelMode.HARD``
        """
        self._check_configured()

        memory = GenerationMemory(target_word_count)
        self.memory = memory
        self.state = RunState.RUNNING
        self.batches_attempted = 0

        batch_number = 1
        consecutive_failures = 0

        self.logger.info(f"Starting precise vocabulary generation for {target_word_count} words")

        while True:
            if memory.is_complete() or memory.remaining_count() == 0:
                self.state = RunState.COMPLETED
                break

            remaining = memory.remaining_count()
            self.logger.info(
                f"  Batch {batch_number}: progress {memory.word_count}/{target_word_count}, "
                f"requesting {requested_count(request.batch_size, remaining)} words"
            )
            prompt = self.composer.compose(request, memory, batch_number, remaining)
            self.batches_attempted += 1

            try:
                text = await self._call_generator(prompt, cancel_event)
            except (TransportError, EmptyResponseError) as e:
                consecutive_failures += 1
                memory.log_event(f"Batch {batch_number}: failed ({e})")
                self.logger.error(
                    f"  Batch {batch_number} failed ({consecutive_failures}/{self.max_retries}): {e}"
                )
                if consecutive_failures >= self.max_retries:
                    self.state = RunState.EXHAUSTED
                    break
                if cancel_event is None or not cancel_event.is_set():
                    await asyncio.sleep(self.backoff_seconds)
                continue

            candidates = self.validator.validate_all(self.extractor.extract(text))
            added = memory.append(candidates)
            memory.log_event(
                f"Batch {batch_number}: Generated {len(candidates)} vocabulary items, "
                f"{len(added)} new"
            )
            self._report_progress()

            if not added:
                consecutive_failures += 1
                self.logger.warning(
                    f"  Batch {batch_number}: no new words "
                    f"({len(candidates)} valid, all duplicates or none), "
                    f"retrying ({consecutive_failures}/{self.max_retries})"
                )
                if consecutive_failures >= self.max_retries:
                    self.state = RunState.EXHAUSTED
                    break
                continue

            self.logger.info(
                f"  Batch {batch_number}: added {len(added)} words, "
                f"progress {memory.word_count}/{target_word_count}"
            )
            consecutive_failures = 0
            batch_number += 1

        if self.state == RunState.EXHAUSTED:
            self.logger.warning(
                f"Could not reach target of {target_word_count} words after "
                f"{self.max_retries} consecutive failed attempts. "
                f"Generated {memory.word_count} words."
            )
        else:
            self.logger.info(f"Target reached: {memory.word_count}/{target_word_count} words")

        records = list(memory.records)
        if max_items is not None:
            records = records[:max_items]
        self.logger.info(f"Final result: {len(records)} vocabulary items, {memory.word_count} total words")
        return records

    async def generate(
        self,
        request: GenerationRequest,
        target_word_count: int = config.DEFAULT_TARGET_WORD_COUNT,
        cancel_event: Optional[asyncio.Event] = None,
        max_items: Optional[int] = None,
    ) -> GenerationResult:
        """Run and return records together with the run statistics."""
        records = await self.run(request, target_word_count, cancel_event, max_items)
        return GenerationResult(records=records, stats=self.stats(), state=self.state)

    def snapshot(self) -> MemorySnapshot:
        """Current memory of the active or most recent run."""
        if self.memory is None:
            return MemorySnapshot()
        return self.memory.snapshot()

    def stats(self) -> GenerationStats:
        """Statistics of the active or most recent run."""
        if self.memory is None:
            return GenerationStats()
        return GenerationStats(
            word_count=self.memory.word_count,
            target_word_count=self.memory.target_word_count,
            item_count=len(self.memory.records),
            batches_attempted=self.batches_attempted,
            is_complete=self.memory.is_complete(),
            history=list(self.memory.history),
        )
