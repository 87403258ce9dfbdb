"""Configuration settings for the precise vocabulary generator."""

import os
from datetime import datetime
from pathlib import Path

# Base paths
PROJECT_ROOT = Path(__file__).parent
OUTPUT_DIR = PROJECT_ROOT / "output"
CHECKPOINTS_DIR = PROJECT_ROOT / "checkpoints"
PROMPTS_DIR = PROJECT_ROOT / "prompts"
LOGS_DIR = PROJECT_ROOT / "logs"


def get_output_path(
    timestamp: datetime | None = None, label: str | None = None, suffix: str = ".json"
) -> Path:
    """Generate output path with datetime suffix.

    Args:
        timestamp: Datetime to use for suffix. If None, uses current time.
        label: Optional subfolder name (e.g. a batch file stem).
        suffix: File extension, ".json" or ".csv".

    Returns:
        Path like output/vocabulary_20260131_143022.json
        or output/business/vocabulary_20260131_143022.json if label provided
    """
    if timestamp is None:
        timestamp = datetime.now()
    stamp = timestamp.strftime("%Y%m%d_%H%M%S")
    if label:
        return OUTPUT_DIR / label / f"vocabulary_{stamp}{suffix}"
    return OUTPUT_DIR / f"vocabulary_{stamp}{suffix}"

# Logging
LOG_LEVEL = os.environ.get("VOCAB_LOG_LEVEL", "INFO")
LOG_FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

# Checkpoint files
BATCH_CHECKPOINT = CHECKPOINTS_DIR / "batch_progress.json"

# Prompt templates
FREE_TEXT_PROMPT = PROMPTS_DIR / "free_text_batch.txt"
PERSONA_PROMPT = PROMPTS_DIR / "persona_batch.txt"

# Generation API settings (vendor-neutral JSON endpoint)
GENERATION_API_BASE_URL = os.environ.get("VOCAB_API_BASE_URL", "")
GENERATION_API_KEY = os.environ.get("VOCAB_API_KEY", "")
GENERATION_MODEL = os.environ.get("VOCAB_MODEL", "gemini-2.5-flash")
GENERATION_API_TIMEOUT = 60  # seconds
GENERATION_API_MAX_ATTEMPTS = 3  # timeouts only

# Claude CLI settings
CLAUDE_MODEL = "claude-opus-4-5-20251101"
CLAUDE_TIMEOUT = 180  # seconds

# Sampling defaults
DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_OUTPUT_TOKENS = 8000
DEFAULT_TOP_P = 0.9
DEFAULT_TOP_K = 40

# Orchestration settings
DEFAULT_TARGET_WORD_COUNT = 70
DEFAULT_BATCH_SIZE = 10
MAX_RETRIES = 5
RETRY_BACKOFF_SECONDS = 1.0

# Request-file processing
CONSECUTIVE_FAILURE_THRESHOLD = 2
SAVE_EVERY = 10
DEFAULT_CONCURRENCY = 2

DIFFICULTY_TIERS = [
    "Beginner",
    "Intermediate",
    "Advanced",
    "Professional",
]

SYSTEM_PROMPT = (
    "You are an expert English language teacher specializing in vocabulary lessons. "
    "Generate relevant and useful English vocabulary words or phrases based on the "
    "user's input. Prioritize words directly connected to the user's theme, topic or "
    "context, such as synonyms, antonyms, related concepts, collocations and "
    "domain-specific terms, so that they are practical and applicable."
)
