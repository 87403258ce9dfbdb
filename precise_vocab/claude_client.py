"""Claude CLI wrapper used as a text generator."""

import asyncio
import json

from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

import config
from precise_vocab.generation_client import EmptyResponseError, TransportError
from precise_vocab.logger import get_logger
from precise_vocab.models import GenerationOptions


class ClaudeGenerationError(TransportError):
    """Raised when Claude generation fails."""

    pass


class ClaudeTimeoutError(ClaudeGenerationError):
    """Raised when Claude generation times out."""

    pass


class ClaudeCliGenerator:
    """Runs the Claude CLI in headless mode and returns its text answer.

    The CLI exposes no sampling controls, so ``options`` is accepted for
    interface compatibility and otherwise ignored.
    """

    def __init__(self, model: str = config.CLAUDE_MODEL, timeout: int = config.CLAUDE_TIMEOUT):
        self.model = model
        self.timeout = timeout
        self.logger = get_logger()

    def build_command(self, prompt: str) -> list[str]:
        return [
            "claude",
            "-p",
            prompt,
            "--model",
            self.model,
            "--output-format",
            "json",
        ]

    @retry(
        stop=stop_after_attempt(2),
        wait=wait_exponential(multiplier=2, min=5, max=60),
        retry=retry_if_exception_type((ClaudeTimeoutError,)),
        reraise=True,
    )
    async def generate_text(self, prompt: str, options: GenerationOptions) -> str:
        """
        Generate text with the Claude CLI.

        Args:
            prompt: The prompt to send to Claude
            options: Ignored

        Returns:
            The text of Claude's answer

        Raises:
            ClaudeGenerationError: If the CLI is missing or exits non-zero
            ClaudeTimeoutError: If generation times out
            EmptyResponseError: If the answer is empty
        """
        try:
            process = await asyncio.create_subprocess_exec(
                *self.build_command(prompt),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError:
            raise ClaudeGenerationError("Claude CLI not found. Please install claude-code CLI.")

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            raise ClaudeTimeoutError(f"Claude generation timed out after {self.timeout}s")
        except asyncio.CancelledError:
            process.kill()
            await process.wait()
            raise

        if process.returncode != 0:
            raise ClaudeGenerationError(f"Claude CLI error: {stderr.decode(errors='replace')}")

        return parse_cli_output(stdout.decode("utf-8", errors="replace"))


def parse_cli_output(stdout: str) -> str:
    """
    Pull the answer text out of ``--output-format json`` output.

    The CLI wraps the answer in an envelope with a ``result`` field; anything
    that is not such an envelope is returned as-is.

    Args:
        stdout: Raw CLI output

    Returns:
        Answer text
    """
    try:
        response = json.loads(stdout)
    except json.JSONDecodeError:
        response = None

    if isinstance(response, dict) and response.get("is_error"):
        raise ClaudeGenerationError(f"Claude CLI error: {response.get('result', 'unknown error')}")

    if isinstance(response, dict) and "result" in response:
        content = response["result"]
    elif isinstance(response, dict) and "content" in response:
        content = response["content"]
    else:
        content = stdout

    if not isinstance(content, str) or not content.strip():
        raise EmptyResponseError("Claude returned an empty answer")
    return content
