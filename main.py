#!/usr/bin/env python3
"""Precise Vocabulary Generator - command line entry point."""

import argparse
import asyncio
import sys
from datetime import datetime
from pathlib import Path

from tqdm import tqdm

import config
from precise_vocab.batch import BatchAbortedError, load_requests, run_batch
from precise_vocab.claude_client import ClaudeCliGenerator
from precise_vocab.export import save_records_csv, save_responses
from precise_vocab.generation_client import ConfigurationError, HttpTextGenerator
from precise_vocab.logger import resolve_level, setup_batch_logger, setup_logger
from precise_vocab.models import GenerationOptions, VocabularyApiRequest
from precise_vocab.orchestrator import BatchOrchestrator
from precise_vocab.service import VocabularyService, build_generation_request, check_connection


def build_generator(backend: str):
    """Create the text generator selected on the command line."""
    if backend == "claude":
        return ClaudeCliGenerator()
    return HttpTextGenerator()


def build_options(args: argparse.Namespace) -> GenerationOptions:
    return GenerationOptions(temperature=args.temperature, max_output_tokens=args.max_output_tokens)


def request_from_args(args: argparse.Namespace) -> VocabularyApiRequest:
    """Build an API request from ``generate`` arguments."""
    if args.occupation or args.interests:
        if not (args.occupation and args.interests):
            raise ValueError("--occupation and --interests must be given together")
        mode = "custom-made"
    elif args.prompt:
        mode = "customized"
    else:
        raise ValueError("Provide a prompt, or --occupation with --interests")

    return VocabularyApiRequest(
        prompt=args.prompt or "",
        difficulty=args.difficulty,
        target_count=args.target,
        mode=mode,
        occupation=args.occupation,
        habits=args.interests,
        theme=args.theme,
        max_items=args.max_items,
    )


async def cmd_generate(args: argparse.Namespace, logger) -> int:
    request = request_from_args(args)
    generator = build_generator(args.backend)

    with tqdm(total=request.target_count, desc="  Words", unit="word") as pbar:

        def on_progress(word_count: int, target: int) -> None:
            pbar.n = min(word_count, target)
            pbar.refresh()

        orchestrator = BatchOrchestrator(
            generator,
            options=build_options(args),
            max_retries=args.max_retries,
            on_progress=on_progress,
        )
        result = await orchestrator.generate(
            build_generation_request(request, args.batch_size),
            target_word_count=request.target_count,
            max_items=request.max_items,
        )

    stats = result.stats
    logger.info(
        f"Generated {stats.item_count} items, {stats.word_count}/{stats.target_word_count} words "
        f"in {stats.batches_attempted} batches ({result.state.value})"
    )
    for line in stats.history:
        logger.info(f"  {line}")

    suffix = ".csv" if args.format == "csv" else ".json"
    output_path = Path(args.output) if args.output else config.get_output_path(suffix=suffix)
    if args.format == "csv":
        save_records_csv(result.records, output_path)
    else:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(result.model_dump_json(indent=2), encoding="utf-8")
    logger.info(f"Output: {output_path}")

    return 0 if stats.is_complete else 2


async def cmd_batch(args: argparse.Namespace, logger) -> int:
    service = VocabularyService(
        build_generator(args.backend),
        options=build_options(args),
        batch_size=args.batch_size,
        max_retries=args.max_retries,
    )
    requests_path = Path(args.requests)
    output_path = Path(args.output) if args.output else None

    if args.parallel:
        responses = await service.batch_generate(load_requests(requests_path), args.concurrency)
        output_path = output_path or config.get_output_path(label=requests_path.stem)
        save_responses(responses, output_path)
        logger.info(f"Saved {len(responses)} responses to: {output_path}")
        return 0 if all(r.success for r in responses) else 2

    try:
        await run_batch(service, requests_path, output_path=output_path, resume=args.resume)
    except BatchAbortedError as e:
        logger.error(f"  {e}")
        logger.info("Progress has been saved. Use --resume with --output to continue.")
        return 1
    return 0


async def cmd_check(args: argparse.Namespace, logger) -> int:
    ok = await check_connection(build_generator(args.backend), build_options(args))
    logger.info("Connection OK" if ok else "Connection FAILED")
    return 0 if ok else 1


def add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--backend",
        choices=["http", "claude"],
        default="http",
        help="Text generator: HTTP endpoint (VOCAB_API_BASE_URL/VOCAB_API_KEY) or Claude CLI",
    )
    parser.add_argument("--temperature", type=float, default=config.DEFAULT_TEMPERATURE)
    parser.add_argument("--max-output-tokens", type=int, default=config.DEFAULT_MAX_OUTPUT_TOKENS)
    parser.add_argument("-v", "--verbose", action="store_true", help="Log debug output")


def add_run_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--batch-size",
        type=int,
        default=config.DEFAULT_BATCH_SIZE,
        help="Words requested per API call",
    )
    parser.add_argument(
        "--max-retries",
        type=int,
        default=config.MAX_RETRIES,
        help="Consecutive failed batches before giving up",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Precise Vocabulary Generator",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Free-text request, 70-word target
  python main.py generate "Vocabulary for cooking and food preparation"

  # Persona request
  python main.py generate --occupation "Software Engineer" \\
      --interests "Reading technical documentation" --difficulty Advanced

  # Requests file, resumable
  python main.py batch requests.json --output output/run1.json --resume

  # Check that the API answers
  python main.py check
        """,
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    generate = subparsers.add_parser("generate", help="Generate vocabulary for one request")
    generate.add_argument("prompt", nargs="?", help="Free-text description of the vocabulary wanted")
    generate.add_argument("--occupation", help="Learner's occupation (persona mode)")
    generate.add_argument("--interests", help="Learner's interests or habits (persona mode)")
    generate.add_argument("--theme", help="Theme or context")
    generate.add_argument("--difficulty", choices=config.DIFFICULTY_TIERS, default="Intermediate")
    generate.add_argument(
        "--target",
        type=int,
        default=config.DEFAULT_TARGET_WORD_COUNT,
        help="Target in words counted over headword, definition and example",
    )
    generate.add_argument("--max-items", type=int, help="Return at most this many vocabulary items")
    generate.add_argument("--format", choices=["json", "csv"], default="json")
    generate.add_argument("--output", help="Output file (default: timestamped under output/)")
    add_run_arguments(generate)
    add_common_arguments(generate)

    batch = subparsers.add_parser("batch", help="Run every request in a JSON requests file")
    batch.add_argument("requests", help="JSON file containing a list of requests")
    batch.add_argument("--output", help="Output file (required to resume)")
    batch.add_argument("--resume", action="store_true", help="Resume from checkpoint")
    batch.add_argument(
        "--parallel",
        action="store_true",
        help="Run requests concurrently (disables checkpointing)",
    )
    batch.add_argument(
        "--concurrency",
        type=int,
        default=config.DEFAULT_CONCURRENCY,
        help="Simultaneous requests with --parallel",
    )
    add_run_arguments(batch)
    add_common_arguments(batch)

    check = subparsers.add_parser("check", help="Test the connection to the text generator")
    add_common_arguments(check)

    return parser


def main():
    args = build_parser().parse_args()
    level = resolve_level(args.verbose)

    if args.command == "batch":
        logger = setup_batch_logger(Path(args.requests).stem, level=level)
    else:
        logger = setup_logger(level=level)

    logger.info("=" * 60)
    logger.info(f"Precise Vocabulary Generator: {args.command}")
    logger.info(f"Started: {datetime.now():%Y-%m-%d %H:%M:%S}")
    logger.info("=" * 60)

    commands = {"generate": cmd_generate, "batch": cmd_batch, "check": cmd_check}
    try:
        exit_code = asyncio.run(commands[args.command](args, logger))
    except (ValueError, ConfigurationError) as e:
        logger.error(f"Error: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        logger.warning("Interrupted by user.")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Pipeline error: {e}", exc_info=True)
        sys.exit(1)

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
