"""Request/response facade around the batch orchestrator."""

import asyncio
import random
import string
import time
from datetime import datetime, timezone
from typing import Optional

import config
from precise_vocab.generation_client import GenerationError, TextGenerator
from precise_vocab.logger import get_logger
from precise_vocab.models import (
    FreeTextRequest,
    GenerationOptions,
    GenerationRequest,
    GenerationStats,
    PersonaRequest,
    ResponseData,
    ResponseMetadata,
    VocabularyApiRequest,
    VocabularyApiResponse,
)
from precise_vocab.orchestrator import BatchOrchestrator
from precise_vocab.prompts import PromptComposer

DEFAULT_FREE_TEXT_CONTEXT = "General Vocabulary"
DEFAULT_PERSONA_THEME = "Professional Development"
CONNECTION_TEST_PROMPT = 'Hello, please respond with "Connection successful"'

_ID_ALPHABET = string.ascii_lowercase + string.digits


def new_request_id() -> str:
    """Request id such as ``req_1767225600000_k3j9x0q2a``."""
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"req_{int(time.time() * 1000)}_{suffix}"


def build_generation_request(
    request: VocabularyApiRequest, batch_size: int = config.DEFAULT_BATCH_SIZE
) -> GenerationRequest:
    """
    Turn an API request into the orchestrator's tagged request.

    Persona mode needs ``mode == "custom-made"`` with both occupation and
    habits; everything else becomes a free-text request.
    """
    if request.mode == "custom-made" and request.occupation and request.habits:
        return PersonaRequest(
            occupation=request.occupation,
            interests=request.habits,
            theme=request.theme or DEFAULT_PERSONA_THEME,
            difficulty_tier=request.difficulty,
            batch_size=batch_size,
        )
    return FreeTextRequest(
        prompt=request.prompt,
        context=request.theme or DEFAULT_FREE_TEXT_CONTEXT,
        difficulty_tier=request.difficulty,
        batch_size=batch_size,
    )


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


async def check_connection(generator: TextGenerator, options: Optional[GenerationOptions] = None) -> bool:
    """Send a short prompt and report whether any text came back."""
    logger = get_logger()
    try:
        text = await generator.generate_text(CONNECTION_TEST_PROMPT, options or GenerationOptions())
    except GenerationError as e:
        logger.error(f"Connection test failed: {e}")
        return False
    logger.info(f"Connection test successful: {text[:100]}")
    return True


class VocabularyService:
    """
    Runs one independent orchestrator per request.

    Orchestrators are created per call and share nothing but the text
    generator, so ``generate`` calls may run concurrently.
    """

    def __init__(
        self,
        generator: Optional[TextGenerator],
        options: Optional[GenerationOptions] = None,
        composer: Optional[PromptComposer] = None,
        batch_size: int = config.DEFAULT_BATCH_SIZE,
        max_retries: int = config.MAX_RETRIES,
        backoff_seconds: float = config.RETRY_BACKOFF_SECONDS,
    ):
        self.generator = generator
        self.options = options or GenerationOptions()
        self.composer = composer or PromptComposer()
        self.batch_size = batch_size
        self.max_retries = max_retries
        self.backoff_seconds = backoff_seconds
        self.logger = get_logger()
        self._active: dict[str, BatchOrchestrator] = {}

    def _new_orchestrator(self) -> BatchOrchestrator:
        return BatchOrchestrator(
            self.generator,
            composer=self.composer,
            options=self.options,
            max_retries=self.max_retries,
            backoff_seconds=self.backoff_seconds,
        )

    async def generate(
        self,
        request: VocabularyApiRequest,
        request_id: Optional[str] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> VocabularyApiResponse:
        """
        Generate vocabulary for one API request.

        Args:
            request: API-style request
            request_id: Optional id; generated if omitted
            cancel_event: Optional cancel signal forwarded to the orchestrator

        Returns:
            Response with vocabulary, stats and metadata. Errors are reported
            with ``success=False`` rather than raised.
        """
        request_id = request_id or new_request_id()
        start = time.monotonic()
        self.logger.info(f"API request {request_id}: target {request.target_count} words")

        orchestrator = self._new_orchestrator()
        self._active[request_id] = orchestrator
        try:
            result = await orchestrator.generate(
                build_generation_request(request, self.batch_size),
                target_word_count=request.target_count,
                cancel_event=cancel_event,
                max_items=request.max_items,
            )
        except GenerationError as e:
            elapsed = int((time.monotonic() - start) * 1000)
            self.logger.error(f"API request {request_id} failed: {e}")
            return self._failure(request, request_id, str(e), elapsed)
        finally:
            self._active.pop(request_id, None)

        elapsed = int((time.monotonic() - start) * 1000)
        self.logger.info(f"API request {request_id} completed in {elapsed}ms")
        return VocabularyApiResponse(
            success=True,
            data=ResponseData(
                vocabulary=result.records,
                stats=result.stats,
                metadata=ResponseMetadata(
                    timestamp=_timestamp(), request_id=request_id, processing_time_ms=elapsed
                ),
            ),
        )

    @staticmethod
    def _failure(
        request: VocabularyApiRequest, request_id: str, error: str, elapsed_ms: int = 0
    ) -> VocabularyApiResponse:
        return VocabularyApiResponse(
            success=False,
            error=error,
            data=ResponseData(
                vocabulary=[],
                stats=GenerationStats(target_word_count=request.target_count),
                metadata=ResponseMetadata(
                    timestamp=_timestamp(), request_id=request_id, processing_time_ms=elapsed_ms
                ),
            ),
        )

    def get_status(self, request_id: str) -> Optional[GenerationStats]:
        """Live stats of an in-flight request, or None once it has finished."""
        orchestrator = self._active.get(request_id)
        if orchestrator is None:
            return None
        return orchestrator.stats()

    async def batch_generate(
        self,
        requests: list[VocabularyApiRequest],
        concurrency: Optional[int] = config.DEFAULT_CONCURRENCY,
    ) -> list[VocabularyApiResponse]:
        """
        Run several requests concurrently, each with its own memory.

        Args:
            requests: Requests to run
            concurrency: Maximum simultaneous runs; unlimited if None or 0

        Returns:
            One response per request, in input order
        """
        self.logger.info(f"Starting batch generation for {len(requests)} requests")
        semaphore = asyncio.Semaphore(concurrency) if concurrency else None

        async def run_one(request: VocabularyApiRequest) -> VocabularyApiResponse:
            if semaphore is None:
                return await self.generate(request)
            async with semaphore:
                return await self.generate(request)

        results = await asyncio.gather(
            *(run_one(request) for request in requests), return_exceptions=True
        )

        responses = []
        for index, (request, result) in enumerate(zip(requests, results)):
            if isinstance(result, BaseException):
                if isinstance(result, asyncio.CancelledError):
                    raise result
                self.logger.error(f"Batch request {index} failed: {result}")
                responses.append(
                    self._failure(request, f"batch_{index}", str(result) or "Batch generation failed")
                )
            else:
                responses.append(result)
        return responses
