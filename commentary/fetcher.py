"""AI commentary for the selected instrument.

``CommentaryFetcher`` turns one instrument snapshot into one short remark and
never raises: service errors and empty replies resolve to fallback strings.

``CommentaryChannel`` holds the remark for the current selection. Every
selection takes a new token; a fetch only publishes its result if its token is
still current, so a slow reply for an earlier selection cannot overwrite a
newer one.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any

from api_client.llm.client import LLMClient
from api_client.llm.tracing import build_trace_entry
from commentary.prompts import build_commentary_prompt
from models.config import CommentaryConfig
from models.market import Instrument
from simulation.errors import CommentaryUnavailable

logger = logging.getLogger(__name__)


class CommentaryFetcher:
    """Requests a short opinionated remark about an instrument from an LLM."""

    def __init__(self, client: LLMClient, config: CommentaryConfig) -> None:
        self._client = client
        self._config = config
        self._last_trace: dict[str, Any] | None = None

    @property
    def last_trace(self) -> dict[str, Any] | None:
        """Trace entry of the most recent request (model, prompt, raw reply, outcome)."""
        return self._last_trace

    async def fetch(self, instrument: Instrument) -> str:
        """Return commentary for *instrument*, or a fallback string.

        The empty-reply fallback and the error fallback are distinct so the
        two cases can be told apart in the UI.
        """
        prompt = build_commentary_prompt(instrument)
        try:
            return await self._request(instrument, prompt)
        except CommentaryUnavailable as exc:
            logger.warning("%s", exc)
            self._trace(instrument, prompt, None, "empty")
            return self._config.empty_fallback
        except Exception as exc:
            logger.warning(
                "Commentary request for %s failed: %s: %s",
                instrument.code,
                type(exc).__name__,
                exc,
            )
            self._trace(instrument, prompt, None, "error")
            return self._config.error_fallback

    async def _request(self, instrument: Instrument, prompt: str) -> str:
        # The client call is blocking; run it off the event loop so ticks keep flowing.
        # wait_for cannot stop the worker thread, so clients must enforce the same
        # timeout themselves or shutdown waits on the abandoned call.
        text = await asyncio.wait_for(
            asyncio.to_thread(self._client.complete, self._config.llm_model, prompt),
            timeout=self._config.timeout_seconds,
        )
        if not isinstance(text, str) or not text.strip():
            raise CommentaryUnavailable(f"Empty commentary for {instrument.code}.")
        self._trace(instrument, prompt, text, "ok")
        return text

    def _trace(
        self,
        instrument: Instrument,
        prompt: str,
        raw_response: str | None,
        outcome: str,
    ) -> None:
        self._last_trace = build_trace_entry(
            self._config.llm_model, instrument.id, prompt, raw_response, outcome
        )
        logger.debug("Commentary trace: %s", self._last_trace)


class CommentaryChannel:
    """Commentary state for the current selection, guarded by a selection token."""

    def __init__(self, fetcher: CommentaryFetcher, placeholder: str) -> None:
        self._fetcher = fetcher
        self._placeholder = placeholder
        self._token = 0
        self._instrument_id: str | None = None
        self._text = placeholder
        self._pending: set[asyncio.Task] = set()

    @property
    def text(self) -> str:
        return self._text

    @property
    def token(self) -> int:
        return self._token

    @property
    def instrument_id(self) -> str | None:
        return self._instrument_id

    def request(self, instrument: Instrument) -> asyncio.Task:
        """Start fetching commentary for *instrument*; supersedes any earlier request.

        Must be called from a running event loop. Returns the background task,
        which resolves to ``True`` if its result was published.
        """
        self._token += 1
        self._instrument_id = instrument.id
        self._text = self._placeholder
        task = asyncio.get_running_loop().create_task(
            self._run(self._token, instrument),
            name=f"commentary-{instrument.id}-{self._token}",
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def aclose(self) -> None:
        """Cancel outstanding requests."""
        pending = list(self._pending)
        for task in pending:
            task.cancel()
        for task in pending:
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def _run(self, token: int, instrument: Instrument) -> bool:
        text = await self._fetcher.fetch(instrument)
        if token != self._token:
            logger.debug(
                "Discarding stale commentary for %s (token %d, current %d).",
                instrument.id,
                token,
                self._token,
            )
            return False
        self._text = text
        return True
