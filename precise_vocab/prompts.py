"""Batch prompt construction with a do-not-repeat list drawn from memory."""

from pathlib import Path

import config
from precise_vocab.memory import GenerationMemory
from precise_vocab.models import FreeTextRequest, GenerationRequest, PersonaRequest

DEFAULT_CONTEXT = "General Vocabulary"
DEFAULT_THEME = "Professional and Personal Development"


def load_prompt_template(path: Path) -> str:
    """Load a prompt template from file."""
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


def requested_count(batch_size: int, remaining_count: int) -> int:
    """Items to ask for in one batch: never more than is still needed."""
    return max(0, min(batch_size, remaining_count))


def exclusion_block(memory: GenerationMemory) -> str:
    """The "do not repeat" section, empty until something has been collected."""
    headwords = memory.headwords()
    if not headwords:
        return ""
    return (
        "\nIMPORTANT: Previously generated words (DO NOT REPEAT): "
        + ", ".join(headwords)
        + "\nAvoid all previously mentioned words.\n"
    )


class PromptComposer:
    """Builds the prompt for the next batch of a run."""

    def __init__(
        self,
        free_text_template: str | None = None,
        persona_template: str | None = None,
        system_prompt: str = config.SYSTEM_PROMPT,
    ):
        self.free_text_template = free_text_template or load_prompt_template(config.FREE_TEXT_PROMPT)
        self.persona_template = persona_template or load_prompt_template(config.PERSONA_PROMPT)
        self.system_prompt = system_prompt

    def compose(
        self,
        request: GenerationRequest,
        memory: GenerationMemory,
        batch_number: int,
        remaining_count: int,
    ) -> str:
        """
        Compose the prompt for one batch.

        Args:
            request: The run's request, never modified
            memory: Current run memory, source of the exclusion list
            batch_number: 1-based number of the batch being requested
            remaining_count: Words still missing from the target

        Returns:
            Prompt text
        """
        count = requested_count(request.batch_size, remaining_count)
        common = {
            "system_prompt": self.system_prompt,
            "count": count,
            "difficulty": request.difficulty_tier,
            "difficulty_lower": str(request.difficulty_tier).lower(),
            "tiers": ", ".join(config.DIFFICULTY_TIERS),
            "batch_number": batch_number,
            "exclusion": exclusion_block(memory),
        }

        if isinstance(request, PersonaRequest):
            return self.persona_template.format(
                occupation=request.occupation,
                interests=request.interests,
                theme=request.theme or DEFAULT_THEME,
                **common,
            )
        if isinstance(request, FreeTextRequest):
            return self.free_text_template.format(
                user_prompt=request.prompt,
                context=request.context or DEFAULT_CONTEXT,
                **common,
            )
        raise TypeError(f"Unsupported request type: {type(request).__name__}")
