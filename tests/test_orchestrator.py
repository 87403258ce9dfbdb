from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from conftest import ScriptedGenerator, record_dict, records_json
from precise_vocab.generation_client import (
    ConfigurationError,
    GenerationCancelledError,
    HttpTextGenerator,
    TransportError,
)
from precise_vocab.models import FreeTextRequest, PersonaRequest, RunState
from precise_vocab.orchestrator import BatchOrchestrator, CancelMode


def make_orchestrator(generator, **kwargs) -> BatchOrchestrator:
    kwargs.setdefault("backoff_seconds", 0)
    return BatchOrchestrator(generator, **kwargs)


def five_word_batch(call: int) -> str:
    """Three unique records per call, each worth 1 + 2 + 2 = 5 words."""
    return json.dumps(
        [
            record_dict(f"w{call}x{i}", definition="short meaning", example="Use it.")
            for i in range(3)
        ]
    )


@pytest.mark.asyncio
async def test_duplicate_headword_in_later_batch_is_dropped(ubiquitous_json):
    duplicate = ubiquitous_json.replace("present everywhere", "found in all places")
    generator = ScriptedGenerator([ubiquitous_json, duplicate])
    orchestrator = make_orchestrator(generator)

    records = await orchestrator.run(FreeTextRequest(prompt="big words"), target_word_count=500)

    assert [r.headword for r in records] == ["ubiquitous"]
    assert records[0].definition == "present everywhere"
    assert orchestrator.state == RunState.EXHAUSTED
    assert generator.calls == 1 + 5
    assert len(orchestrator.snapshot().history) == 6


@pytest.mark.asyncio
async def test_markdown_fenced_response():
    items = [record_dict("alpha"), record_dict("beta"), record_dict("gamma")]
    fenced = "```json\n" + json.dumps(items, indent=2) + "\n```"
    orchestrator = make_orchestrator(ScriptedGenerator([fenced]))

    records = await orchestrator.run(FreeTextRequest(prompt="x"), target_word_count=5)

    assert len(records) == 3
    assert orchestrator.state == RunState.COMPLETED


@pytest.mark.asyncio
async def test_target_reached_after_exact_number_of_batches():
    generator = ScriptedGenerator([five_word_batch])
    orchestrator = make_orchestrator(generator)

    result = await orchestrator.generate(FreeTextRequest(prompt="x"), target_word_count=70)

    assert generator.calls == 5  # ceil(70 / 15)
    assert result.stats.word_count == 75
    assert result.stats.is_complete
    assert result.stats.item_count == 15
    assert result.stats.batches_attempted == 5
    assert result.state == RunState.COMPLETED


@pytest.mark.asyncio
async def test_transport_failures_exhaust_without_raising():
    generator = ScriptedGenerator([TransportError("timed out")])
    orchestrator = make_orchestrator(generator)

    result = await orchestrator.generate(FreeTextRequest(prompt="x"), target_word_count=70)

    assert result.records == []
    assert not result.stats.is_complete
    assert result.state == RunState.EXHAUSTED
    assert generator.calls == 5
    assert all("failed" in line for line in result.stats.history)


@pytest.mark.asyncio
async def test_garbage_responses_terminate_within_max_retries():
    generator = ScriptedGenerator(["I cannot produce JSON today."])
    orchestrator = make_orchestrator(generator, max_retries=3)

    records = await orchestrator.run(FreeTextRequest(prompt="x"), target_word_count=70)

    assert records == []
    assert generator.calls == 3
    assert not orchestrator.snapshot().word_count


@pytest.mark.asyncio
async def test_success_resets_failure_count():
    failure = TransportError("boom")
    generator = ScriptedGenerator([failure] * 4 + [records_json("alpha")] + [failure])
    orchestrator = make_orchestrator(generator)

    records = await orchestrator.run(FreeTextRequest(prompt="x"), target_word_count=500)

    assert [r.headword for r in records] == ["alpha"]
    assert generator.calls == 4 + 1 + 5


@pytest.mark.asyncio
async def test_batch_number_advances_only_on_new_records():
    generator = ScriptedGenerator(
        [TransportError("boom"), records_json("alpha"), records_json("alpha"), records_json("beta")]
    )
    orchestrator = make_orchestrator(generator)

    await orchestrator.run(FreeTextRequest(prompt="x"), target_word_count=12)

    batch_labels = [p.split("Batch ")[1].split(":")[0] for p in generator.prompts]
    assert batch_labels == ["1", "1", "2", "2"]


@pytest.mark.asyncio
async def test_later_prompts_exclude_collected_words():
    generator = ScriptedGenerator([records_json("alpha", "beta"), records_json("gamma")])
    orchestrator = make_orchestrator(generator)

    await orchestrator.run(PersonaRequest(occupation="chef", interests="baking"), target_word_count=15)

    assert "DO NOT REPEAT" not in generator.prompts[0]
    assert "(DO NOT REPEAT): alpha, beta" in generator.prompts[1]


@pytest.mark.asyncio
async def test_first_prompt_is_capped_to_remaining_words():
    generator = ScriptedGenerator([records_json("alpha")])
    orchestrator = make_orchestrator(generator)

    await orchestrator.run(FreeTextRequest(prompt="x", batch_size=10), target_word_count=3)

    assert "generate exactly 3 unique words" in generator.prompts[0]


@pytest.mark.asyncio
async def test_results_have_no_duplicate_headwords():
    generator = ScriptedGenerator(
        [records_json("Alpha", "beta"), records_json("ALPHA", "gamma", "Beta"), records_json("delta")]
    )
    orchestrator = make_orchestrator(generator)

    records = await orchestrator.run(FreeTextRequest(prompt="x"), target_word_count=30)

    keys = [r.headword.lower() for r in records]
    assert len(keys) == len(set(keys))


@pytest.mark.asyncio
async def test_max_items_truncates_result():
    orchestrator = make_orchestrator(ScriptedGenerator([records_json("a", "b", "c", "d")]))

    records = await orchestrator.run(FreeTextRequest(prompt="x"), target_word_count=10, max_items=2)

    assert [r.headword for r in records] == ["a", "b"]
    assert len(orchestrator.snapshot().records) == 4


@pytest.mark.asyncio
async def test_progress_callback_sees_growing_counts():
    seen = []
    generator = ScriptedGenerator([five_word_batch])
    orchestrator = make_orchestrator(generator, on_progress=lambda count, target: seen.append((count, target)))

    await orchestrator.run(FreeTextRequest(prompt="x"), target_word_count=30)

    assert seen == [(15, 30), (30, 30)]


@pytest.mark.asyncio
async def test_missing_generator_raises_before_any_batch():
    with pytest.raises(ConfigurationError):
        await make_orchestrator(None).run(FreeTextRequest(prompt="x"), target_word_count=10)


@pytest.mark.asyncio
async def test_unconfigured_http_generator_raises():
    orchestrator = make_orchestrator(HttpTextGenerator(base_url="", api_key=""))

    with pytest.raises(ConfigurationError):
        await orchestrator.run(FreeTextRequest(prompt="x"), target_word_count=10)


class SlowGenerator:
    def __init__(self):
        self.calls = 0

    async def generate_text(self, prompt, options):
        self.calls += 1
        await asyncio.sleep(30)
        return "[]"


async def set_after(event: asyncio.Event, delay: float) -> None:
    await asyncio.sleep(delay)
    event.set()


@pytest.mark.asyncio
async def test_hard_cancel_raises():
    cancel = asyncio.Event()
    orchestrator = make_orchestrator(SlowGenerator(), cancel_mode=CancelMode.HARD)
    setter = asyncio.create_task(set_after(cancel, 0.05))

    with pytest.raises(GenerationCancelledError):
        await asyncio.wait_for(
            orchestrator.run(FreeTextRequest(prompt="x"), target_word_count=10, cancel_event=cancel),
            timeout=5,
        )
    await setter


@pytest.mark.asyncio
async def test_graceful_cancel_ends_exhausted():
    cancel = asyncio.Event()
    generator = SlowGenerator()
    orchestrator = make_orchestrator(generator, backoff_seconds=10)
    setter = asyncio.create_task(set_after(cancel, 0.05))

    result = await asyncio.wait_for(
        orchestrator.generate(FreeTextRequest(prompt="x"), target_word_count=10, cancel_event=cancel),
        timeout=5,
    )
    await setter

    assert result.state == RunState.EXHAUSTED
    assert result.records == []
    assert generator.calls == 1
    assert result.stats.batches_attempted == 5


def test_max_retries_must_be_positive():
    with pytest.raises(ValueError):
        BatchOrchestrator(ScriptedGenerator(["[]"]), max_retries=0)


@pytest.mark.asyncio
async def test_http_generator_with_plain_json_array_body():
    body = records_json("alpha", "beta", "gamma")
    client = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(200, text=body)))
    generator = HttpTextGenerator(
        base_url="https://llm.example.test/generate", api_key="sk-test", max_attempts=1, client=client
    )

    result = await make_orchestrator(generator).generate(FreeTextRequest(prompt="x"), target_word_count=10)

    assert result.state == RunState.COMPLETED
    assert [r.headword for r in result.records] == ["alpha", "beta", "gamma"]
