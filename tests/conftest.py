from __future__ import annotations

import json
import sys
from pathlib import Path

import pytest

# Make config and the package importable when running tests from the repo root.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def record_dict(word: str, **overrides) -> dict:
    """A raw record as the upstream is asked to return it."""
    data = {
        "word": word,
        "definition": f"meaning of {word}",
        "example": f"I used {word}.",
        "pronunciation": f"/{word}/",
        "category": "noun",
        "difficultyTier": "Intermediate",
        "localizedMeaning": "意思",
    }
    data.update(overrides)
    return data


def records_json(*words: str, **overrides) -> str:
    return json.dumps([record_dict(w, **overrides) for w in words], ensure_ascii=False)


class ScriptedGenerator:
    """Replays scripted answers; the last entry repeats once the script runs out.

    Entries may be strings, exceptions (raised) or callables taking the
    1-based call number and returning a string.
    """

    def __init__(self, responses):
        self.responses = list(responses)
        self.prompts: list[str] = []

    @property
    def calls(self) -> int:
        return len(self.prompts)

    async def generate_text(self, prompt, options):
        self.prompts.append(prompt)
        response = self.responses[min(self.calls, len(self.responses)) - 1]
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response(self.calls)
        return response


@pytest.fixture
def ubiquitous_json() -> str:
    return (
        '[{"word":"ubiquitous","definition":"present everywhere",'
        '"example":"Smartphones are ubiquitous.","pronunciation":"/juːˈbɪkwɪtəs/",'
        '"category":"adjective","difficultyTier":"Advanced","localizedMeaning":"無所不在的"}]'
    )
