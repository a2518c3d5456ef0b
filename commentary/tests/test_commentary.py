"""
Tests for the AI commentary fetcher.

All tests use fake clients (no API keys needed).
Tests verify:
  1. Prompt contains the instrument's name, code, sector and price
  2. Successful replies are returned verbatim
  3. Empty replies and service errors resolve to distinct fallbacks
  4. A newer selection is never overwritten by a stale reply
  5. LLM client registry and chat-model client text extraction
"""

import asyncio
import logging
import time
from unittest.mock import MagicMock, patch

import pytest

from api_client.llm.chat_client import ChatModelClient, MockLLMClient
from api_client.llm.registry import available_providers, create_llm_client
from commentary.fetcher import CommentaryChannel, CommentaryFetcher
from commentary.prompts import build_commentary_prompt
from models.config import CommentaryConfig
from models.market import Instrument


def make_instrument(instrument_id: str = "stock-3", name: str = "Semi Sheng Group") -> Instrument:
    return Instrument(
        id=instrument_id,
        name=name,
        code="600003",
        price=123.456,
        open_price=120.0,
        high=124.0,
        low=119.0,
        last_close=121.0,
        change_percent=2.03,
        sector="Semiconductors",
    )


# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def config() -> CommentaryConfig:
    return CommentaryConfig(llm_provider="mock", llm_model="test-model", timeout_seconds=0.2)


@pytest.fixture
def instrument() -> Instrument:
    return make_instrument()


def fetch(fetcher: CommentaryFetcher, instrument: Instrument) -> str:
    return asyncio.run(fetcher.fetch(instrument))


# =============================================================================
# 1. PROMPT
# =============================================================================


def test_prompt_embeds_instrument_details(instrument):
    prompt = build_commentary_prompt(instrument)
    assert "Semi Sheng Group (600003)" in prompt
    assert "Semiconductors" in prompt
    assert "123.46" in prompt
    assert "50 characters" in prompt


# =============================================================================
# 2-3. FETCH AND FALLBACKS
# =============================================================================


def test_reply_returned_verbatim(config, instrument):
    client = MockLLMClient(["  Chips are hot, don't get burned.  "])
    text = fetch(CommentaryFetcher(client, config), instrument)

    assert text == "  Chips are hot, don't get burned.  "
    model, prompt = client.calls[0]
    assert model == "test-model"
    assert prompt == build_commentary_prompt(instrument)


@pytest.mark.parametrize("reply", [None, "", "   "])
def test_empty_reply_uses_neutral_fallback(config, instrument, reply, caplog):
    client = MagicMock()
    client.complete.return_value = reply
    fetcher = CommentaryFetcher(client, config)

    with caplog.at_level(logging.WARNING, logger="commentary.fetcher"):
        assert fetch(fetcher, instrument) == config.empty_fallback
    assert fetcher.last_trace["outcome"] == "empty"
    assert any(
        r.levelno == logging.WARNING and "Empty commentary" in r.getMessage()
        for r in caplog.records
    )


def test_service_error_uses_error_fallback(config, instrument):
    client = MagicMock()
    client.complete.side_effect = ConnectionError("network down")
    fetcher = CommentaryFetcher(client, config)

    assert fetch(fetcher, instrument) == config.error_fallback
    assert config.error_fallback != config.empty_fallback
    assert fetcher.last_trace["outcome"] == "error"


def test_slow_service_times_out_to_error_fallback(config, instrument):
    class SlowClient:
        def complete(self, model, prompt):
            time.sleep(0.5)
            return "too late"

    assert fetch(CommentaryFetcher(SlowClient(), config), instrument) == config.error_fallback


def test_trace_records_successful_reply(config, instrument):
    fetcher = CommentaryFetcher(MockLLMClient(["ok"]), config)
    fetch(fetcher, instrument)
    assert fetcher.last_trace == {
        "model_name": "test-model",
        "instrument_id": "stock-3",
        "prompt": build_commentary_prompt(instrument),
        "raw_response": "ok",
        "outcome": "ok",
    }


# =============================================================================
# 4. SELECTION TOKEN
# =============================================================================


class GatedFetcher:
    """Fake fetcher whose replies are released by the test, per instrument."""

    def __init__(self) -> None:
        self.gates: dict[str, asyncio.Event] = {}

    async def fetch(self, instrument: Instrument) -> str:
        gate = self.gates.setdefault(instrument.id, asyncio.Event())
        await gate.wait()
        return f"remark for {instrument.id}"


def test_stale_reply_does_not_overwrite_newer_selection():
    fetcher = GatedFetcher()
    channel = CommentaryChannel(fetcher, "loading")
    first_inst = make_instrument("stock-1")
    second_inst = make_instrument("stock-2")

    async def scenario():
        first = channel.request(first_inst)
        second = channel.request(second_inst)
        assert channel.text == "loading"
        assert channel.instrument_id == "stock-2"

        await asyncio.sleep(0)
        fetcher.gates["stock-2"].set()
        assert await second is True
        assert channel.text == "remark for stock-2"

        fetcher.gates["stock-1"].set()
        assert await first is False
        assert channel.text == "remark for stock-2"

    asyncio.run(scenario())
    assert channel.token == 2


def test_new_selection_resets_to_placeholder():
    fetcher = GatedFetcher()
    channel = CommentaryChannel(fetcher, "loading")

    async def scenario():
        task = channel.request(make_instrument("stock-1"))
        await asyncio.sleep(0)
        fetcher.gates["stock-1"].set()
        await task
        assert channel.text == "remark for stock-1"

        channel.request(make_instrument("stock-2"))
        assert channel.text == "loading"
        await channel.aclose()

    asyncio.run(scenario())
    assert channel.text == "loading"


def test_aclose_cancels_pending_requests():
    channel = CommentaryChannel(GatedFetcher(), "loading")

    async def scenario():
        task = channel.request(make_instrument())
        await asyncio.sleep(0)
        await channel.aclose()
        return task

    task = asyncio.run(scenario())
    assert task.cancelled()


# =============================================================================
# 5. CLIENTS
# =============================================================================


def test_registry_builds_known_providers():
    assert {"openai", "anthropic", "mock"} <= set(available_providers())
    assert isinstance(create_llm_client(CommentaryConfig(llm_provider="mock")), MockLLMClient)
    assert isinstance(create_llm_client(CommentaryConfig(llm_provider="OpenAI")), ChatModelClient)


@pytest.mark.parametrize("provider", ["openai", "anthropic"])
def test_registry_passes_request_timeout_to_chat_model(provider):
    config = CommentaryConfig(llm_provider=provider, llm_model="m", temperature=0.3, timeout_seconds=7)
    llm = MagicMock()
    llm.invoke.return_value = MagicMock(content="ok")
    with patch("api_client.llm.chat_client._create_chat_model", return_value=llm) as create:
        create_llm_client(config).complete("m", "prompt")

    create.assert_called_once_with(provider, "m", 0.3, 7)


def test_registry_rejects_unknown_provider():
    with pytest.raises(KeyError):
        create_llm_client(CommentaryConfig(llm_provider="carrier-pigeon"))


@pytest.mark.parametrize(
    "content, expected",
    [
        ("Hold tight.", "Hold tight."),
        ([{"type": "text", "text": "Hold "}, {"type": "text", "text": "tight."}], "Hold tight."),
        ("", None),
        ([], None),
    ],
)
def test_chat_model_client_extracts_text(content, expected):
    llm = MagicMock()
    llm.invoke.return_value = MagicMock(content=content)
    with patch("api_client.llm.chat_client._create_chat_model", return_value=llm) as create:
        client = ChatModelClient("openai", temperature=0.5, timeout=5)
        assert client.complete("gpt-4o-mini", "prompt") == expected
        client.complete("gpt-4o-mini", "again")

    create.assert_called_once_with("openai", "gpt-4o-mini", 0.5, 5)
    messages = llm.invoke.call_args_list[0][0][0]
    assert messages[0].content == "prompt"


def test_chat_model_client_rejects_unknown_provider():
    with pytest.raises(ValueError):
        ChatModelClient("carrier-pigeon").complete("m", "p")


def test_mock_client_cycles_replies():
    client = MockLLMClient(["a", "b"])
    assert [client.complete("m", "p") for _ in range(3)] == ["a", "b", "a"]
    assert MockLLMClient([]).complete("m", "p") is None
