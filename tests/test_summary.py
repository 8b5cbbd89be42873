import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from helpdesk.core.config import Settings
from helpdesk.metrics import metrics_registry
from helpdesk.tickets.summary import SUMMARY_SYSTEM_PROMPT, SummaryGenerator, SummarySettings


def _completion(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def _client(*, result=None, error=None):
    create = AsyncMock(return_value=result, side_effect=error)
    return SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))


def _generator(client, **overrides) -> SummaryGenerator:
    settings = SummarySettings(api_key=overrides.pop("api_key", "sk-test"), **overrides)
    return SummaryGenerator(settings, client=client)


def test_settings_are_read_from_application_settings():
    settings = SummarySettings.from_settings(
        Settings(ai_api_key="sk-live", ai_model_name="gpt-test", ai_max_tokens=99, ai_temperature=0.2)
    )

    assert settings.api_key == "sk-live"
    assert settings.model_name == "gpt-test"
    assert settings.max_tokens == 99
    assert settings.temperature == 0.2
    assert settings.active


def test_generator_is_inactive_without_key_or_when_disabled():
    assert not SummarySettings(api_key=None).active
    assert not SummarySettings(api_key="   ").active
    assert not SummarySettings(api_key="sk-test", enabled=False).active


@pytest.mark.asyncio
async def test_generate_summary_sends_prompt_and_strips_reply():
    client = _client(result=_completion("  Laptop fails to boot after update.  \n"))
    generator = _generator(client, model_name="gpt-4o-mini", max_tokens=150, temperature=0.7)

    summary = await generator.generate_summary("My laptop will not boot after the update.")

    assert summary == "Laptop fails to boot after update."
    kwargs = client.chat.completions.create.await_args.kwargs
    assert kwargs["model"] == "gpt-4o-mini"
    assert kwargs["max_tokens"] == 150
    assert kwargs["temperature"] == 0.7
    assert kwargs["messages"][0] == {"role": "system", "content": SUMMARY_SYSTEM_PROMPT}
    assert kwargs["messages"][1]["role"] == "user"
    assert kwargs["messages"][1]["content"].endswith("My laptop will not boot after the update.")


@pytest.mark.asyncio
@pytest.mark.parametrize("description", ["", "   ", "\n\t"])
async def test_blank_description_skips_the_api(description):
    client = _client(result=_completion("unused"))

    assert await _generator(client).generate_summary(description) is None
    client.chat.completions.create.assert_not_awaited()


@pytest.mark.asyncio
async def test_disabled_generator_returns_none():
    client = _client(result=_completion("unused"))

    assert await _generator(client, enabled=False).generate_summary("Cannot print invoices.") is None
    client.chat.completions.create.assert_not_awaited()


@pytest.mark.asyncio
async def test_long_descriptions_are_truncated():
    client = _client(result=_completion("Summary"))

    await _generator(client).generate_summary("x" * 6000)

    prompt = client.chat.completions.create.await_args.kwargs["messages"][1]["content"]
    assert prompt.count("x") == 5000


@pytest.mark.asyncio
async def test_api_errors_are_absorbed_and_counted():
    failures = metrics_registry.counter("ticket_summary_failures_total")
    before = failures.value()
    client = _client(error=RuntimeError("rate limited"))

    assert await _generator(client).generate_summary("Cannot print invoices.") is None
    assert failures.value() == before + 1


@pytest.mark.asyncio
@pytest.mark.parametrize("completion", [_completion(None), _completion("   "), SimpleNamespace(choices=[])])
async def test_empty_completion_returns_none(completion):
    client = _client(result=completion)

    assert await _generator(client).generate_summary("Cannot print invoices.") is None


@pytest.mark.asyncio
async def test_cancellation_is_not_absorbed():
    client = _client(error=asyncio.CancelledError())

    with pytest.raises(asyncio.CancelledError):
        await _generator(client).generate_summary("Cannot print invoices.")
