"""Request-file processing: run many generation requests with checkpointing."""

import json
from pathlib import Path

from tqdm import tqdm

import config
from precise_vocab.checkpoint import CheckpointManager
from precise_vocab.export import load_responses, save_responses
from precise_vocab.logger import get_logger
from precise_vocab.models import VocabularyApiRequest, VocabularyApiResponse
from precise_vocab.service import VocabularyService


class BatchAbortedError(Exception):
    """Raised when requests fail consecutively, indicating systemic issues like rate limits."""

    pass


def load_requests(path: Path) -> list[VocabularyApiRequest]:
    """Load a JSON list of API requests."""
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, list):
        raise ValueError(f"Requests file must contain a JSON list: {path}")
    return [VocabularyApiRequest(**item) for item in data]


def request_key(request: VocabularyApiRequest, index: int) -> str:
    """Checkpoint key: the request's own id, or its position in the file."""
    return request.id or f"request_{index}"


def is_failed_response(response: VocabularyApiResponse) -> bool:
    """A response counts as failed if it errored or produced nothing."""
    return not response.success or not response.data.vocabulary


async def run_batch(
    service: VocabularyService,
    requests_path: Path,
    output_path: Path | None = None,
    checkpoint_path: Path = config.BATCH_CHECKPOINT,
    resume: bool = False,
    failure_threshold: int = config.CONSECUTIVE_FAILURE_THRESHOLD,
) -> list[VocabularyApiResponse]:
    """
    Run every request in a requests file.

    Args:
        service: Service used for each request
        requests_path: JSON file with a list of requests
        output_path: Where to save responses. If None, generates with current timestamp.
        checkpoint_path: Checkpoint file tracking processed requests
        resume: Whether to skip requests already processed and keep earlier output
        failure_threshold: Consecutive failed requests before aborting

    Returns:
        All responses saved to ``output_path``

    Raises:
        BatchAbortedError: After ``failure_threshold`` consecutive failed requests
    """
    logger = get_logger()

    if output_path is None:
        output_path = config.get_output_path(label=requests_path.stem)

    requests = load_requests(requests_path)
    logger.info(f"Processing requests file: {requests_path} ({len(requests)} requests)")

    checkpoint = CheckpointManager(checkpoint_path)
    if not resume:
        checkpoint.reset()

    responses = load_responses(output_path) if resume else []

    pending = [
        (i, request)
        for i, request in enumerate(requests)
        if not (resume and checkpoint.is_processed(request_key(request, i)))
    ]
    if not pending:
        logger.info("  No requests to process (all already completed)")
        return responses

    # Failed requests are retried; drop their earlier responses.
    pending_keys = {request_key(request, i) for i, request in pending}
    responses = [r for r in responses if r.data.metadata.request_id not in pending_keys]

    logger.info(f"  Processing {len(pending)} requests...")
    consecutive_failures = 0

    for n, (i, request) in enumerate(tqdm(pending, desc="  Generating")):
        key = request_key(request, i)
        response = await service.generate(request, request_id=key)
        responses.append(response)

        stats = response.data.stats
        if is_failed_response(response):
            checkpoint.mark_failed(key)
            consecutive_failures += 1
            logger.error(
                f"  [{n + 1}/{len(pending)}] Failed: {key} - {response.error or 'no vocabulary generated'}"
            )
            if consecutive_failures >= failure_threshold:
                save_responses(responses, output_path)
                raise BatchAbortedError(
                    f"Stopping after {failure_threshold} consecutive failed requests"
                )
        else:
            checkpoint.mark_processed(key)
            consecutive_failures = 0
            logger.info(
                f"  [{n + 1}/{len(pending)}] {key}: {stats.item_count} items, "
                f"{stats.word_count}/{stats.target_word_count} words"
                + ("" if stats.is_complete else " (partial)")
            )

        if (n + 1) % config.SAVE_EVERY == 0:
            save_responses(responses, output_path)
            logger.info(f"  Checkpoint saved: {len(responses)} responses")

    save_responses(responses, output_path)
    logger.info(f"  Saved {len(responses)} responses to: {output_path}")
    logger.info(f"  Successfully processed: {checkpoint.processed_count}")
    logger.info(f"  Failed: {checkpoint.failed_count}")
    return responses
