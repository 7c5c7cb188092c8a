"""Bounded-retry concurrent batch generation."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from .compose.policy import RESPONSE_TEXT
from .compose.requests import ComposedRequest, ContentRequest, ImagesRequest
from .providers.base import BackendResponse, GenerationBackend
from .runs.artifacts import Artifact
from .runs.events import EventWriter

ProgressCallback = Callable[[int, int], None]
Sleep = Callable[[float], Awaitable[Any]]


@dataclass(frozen=True)
class RetryPolicy:
    target_count: int
    max_attempts: int
    backoff_ms: int = 500

    @classmethod
    def for_target(
        cls,
        count: int,
        *,
        multiplier: int = 3,
        backoff_ms: int = 500,
        response_kind: str = "image",
    ) -> "RetryPolicy":
        if response_kind == RESPONSE_TEXT:
            # analysis is a single shot regardless of the requested count
            return cls(target_count=1, max_attempts=1, backoff_ms=backoff_ms)
        target = max(1, int(count))
        return cls(target_count=target, max_attempts=target * max(1, multiplier), backoff_ms=backoff_ms)


@dataclass
class GenerationOutcome:
    target_count: int
    response_kind: str
    artifacts: list[Artifact] = field(default_factory=list)
    text: str | None = None
    attempts: int = 0
    failures: int = 0
    batches: int = 0

    @property
    def collected(self) -> int:
        if self.response_kind == RESPONSE_TEXT:
            return 1 if self.text is not None else 0
        return len(self.artifacts)

    @property
    def complete(self) -> bool:
        return self.collected >= self.target_count

    @property
    def partial(self) -> bool:
        return 0 < self.collected < self.target_count


class GenerationOrchestrator:
    """Dispatch a composed request until ``target_count`` results arrive or the budget runs out.

    Every dispatched unit is charged to the attempt budget whether it succeeds or
    not. Batches run strictly one after another; calls inside a batch run
    concurrently and fail independently.
    """

    def __init__(
        self,
        backend: GenerationBackend,
        events: EventWriter | None = None,
        sleep: Sleep = asyncio.sleep,
        call_timeout_s: float | None = None,
    ) -> None:
        self.backend = backend
        self.events = events
        self.sleep = sleep
        self.call_timeout_s = call_timeout_s

    async def run(
        self,
        composed: ComposedRequest,
        policy: RetryPolicy,
        on_progress: ProgressCallback | None = None,
    ) -> GenerationOutcome:
        outcome = GenerationOutcome(target_count=policy.target_count, response_kind=composed.response_kind)
        while outcome.collected < policy.target_count and outcome.attempts < policy.max_attempts:
            if outcome.batches > 0:
                await self.sleep(policy.backoff_ms / 1000.0)
            needed = policy.target_count - outcome.collected
            outcome.batches += 1
            outcome.attempts += needed
            self._emit("batch_dispatched", batch=outcome.batches, needed=needed, attempts=outcome.attempts)

            if isinstance(composed.request, ImagesRequest):
                results = [await self._settle(self._call_images(composed.request.with_count(needed)))]
            else:
                results = await asyncio.gather(
                    *(self._settle(self._call_content(composed.request)) for _ in range(needed))
                )

            for result in results:
                if isinstance(result, Exception):
                    outcome.failures += 1
                    self._emit("attempt_failed", batch=outcome.batches, error=f"{type(result).__name__}: {result}")
                    continue
                self._collect(outcome, composed, result)
                if outcome.response_kind == RESPONSE_TEXT and outcome.text is not None:
                    break

            if outcome.response_kind != RESPONSE_TEXT:
                self._emit("progress", collected=outcome.collected, target=policy.target_count)
                if on_progress is not None:
                    on_progress(outcome.collected, policy.target_count)
            if outcome.response_kind == RESPONSE_TEXT:
                break
        return outcome

    def _collect(self, outcome: GenerationOutcome, composed: ComposedRequest, response: BackendResponse) -> None:
        if outcome.response_kind == RESPONSE_TEXT:
            if response.text and response.text.strip():
                outcome.text = response.text
            else:
                self._emit("attempt_empty", batch=outcome.batches, reason="no text")
            return
        if composed.natively_batched:
            found = list(response.images)
        else:
            first = response.first_image
            found = [first] if first is not None else []
        if not found:
            self._emit("attempt_empty", batch=outcome.batches, reason="no image data", raw=dict(response.raw))
        for artifact in found:
            if len(outcome.artifacts) >= outcome.target_count:
                break
            outcome.artifacts.append(artifact)

    async def _call_content(self, request: ContentRequest) -> BackendResponse:
        return await self.with_timeout(self.backend.generate_content(request))

    async def _call_images(self, request: ImagesRequest) -> BackendResponse:
        return await self.with_timeout(self.backend.generate_images(request))

    async def with_timeout(self, call: Awaitable[BackendResponse]) -> BackendResponse:
        if self.call_timeout_s is None:
            return await call
        return await asyncio.wait_for(call, timeout=self.call_timeout_s)

    @staticmethod
    async def _settle(call: Awaitable[BackendResponse]) -> BackendResponse | Exception:
        try:
            return await call
        except Exception as exc:
            return exc

    def _emit(self, event_type: str, **payload: Any) -> None:
        if self.events is not None:
            self.events.emit(event_type, **payload)
