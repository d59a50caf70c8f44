"""Correlation of LIST / WHOIS replies with the callers waiting for them."""

from __future__ import annotations

import asyncio
import itertools
import logging
import time
from dataclasses import dataclass, field

from ..constants import REQUEST_EXPIRY_SECONDS, REQUEST_RESULT_TIMEOUT
from ..errors.internal import NetworkError, RequestTimeoutError
from ..logs.logger import logger

_ids = itertools.count(1)


def _consume_exception(fut: asyncio.Future) -> None:
    # Nobody may be awaiting an abandoned request.
    if not fut.cancelled():
        fut.exception()


@dataclass
class PendingRequest:
    kind: str
    target: str
    future: asyncio.Future[list[dict[str, str]]]
    id: str = ""
    entries: list[dict[str, str]] = field(default_factory=list)
    started: float = field(default_factory=time.monotonic)

    def __post_init__(self) -> None:
        if not self.id:
            self.id = f"{self.kind}_{next(_ids)}"

    @property
    def complete(self) -> bool:
        return self.future.done()

    def matches(self, kind: str, target: str | None) -> bool:
        if self.kind != kind or self.complete:
            return False
        return target is None or self.target.lower() == target.lower()


class RequestTracker:
    """Pending LIST and WHOIS requests keyed by kind and target nick.

    Lives on the event loop; replies are attached by the dispatcher and the
    terminating numeric (323 / 318) resolves the caller's future.
    """

    def __init__(self, expiry: float = REQUEST_EXPIRY_SECONDS) -> None:
        self.expiry = expiry
        self._pending: dict[str, PendingRequest] = {}

    def __len__(self) -> int:
        return len(self._pending)

    def create(self, kind: str, target: str = "") -> PendingRequest:
        self.expire()
        fut: asyncio.Future[list[dict[str, str]]] = (
            asyncio.get_running_loop().create_future()
        )
        fut.add_done_callback(_consume_exception)
        request = PendingRequest(kind=kind, target=target, future=fut)
        self._pending[request.id] = request
        logger.log_event(
            "request",
            "created",
            level=logging.DEBUG,
            request_id=request.id,
            target=target,
        )
        return request

    def find(self, kind: str, target: str | None = None) -> PendingRequest | None:
        for request in self._pending.values():
            if request.matches(kind, target):
                return request
        return None

    def add_entry(
        self, kind: str, entry: dict[str, str], target: str | None = None
    ) -> bool:
        request = self.find(kind, target)
        if request is None:
            return False
        request.entries.append(entry)
        return True

    def complete(self, kind: str, target: str | None = None) -> bool:
        request = self.find(kind, target)
        if request is None:
            return False
        del self._pending[request.id]
        request.future.set_result(list(request.entries))
        logger.log_event(
            "request",
            "completed",
            level=logging.DEBUG,
            request_id=request.id,
            entries=len(request.entries),
        )
        return True

    async def wait(
        self, request: PendingRequest, timeout: float = REQUEST_RESULT_TIMEOUT
    ) -> list[dict[str, str]]:
        """Await the request's entries.

        Raises:
            RequestTimeoutError: the terminating reply did not arrive in time.
        """
        try:
            return await asyncio.wait_for(asyncio.shield(request.future), timeout)
        except TimeoutError as e:
            self._pending.pop(request.id, None)
            if not request.future.done():
                request.future.cancel()
            raise RequestTimeoutError(
                f"{request.kind} request timed out",
                data={"request_id": request.id, "target": request.target},
            ) from e

    def expire(self, now: float | None = None) -> int:
        """Drop requests older than the expiry window."""
        now = time.monotonic() if now is None else now
        stale = [r for r in self._pending.values() if now - r.started > self.expiry]
        for request in stale:
            del self._pending[request.id]
            if not request.future.done():
                request.future.cancel()
            logger.log_event(
                "request",
                "expired",
                level=logging.DEBUG,
                request_id=request.id,
            )
        return len(stale)

    def fail_all(self, reason: str) -> None:
        """Fail every pending request, e.g. when the connection drops."""
        pending = list(self._pending.values())
        self._pending.clear()
        for request in pending:
            if not request.future.done():
                request.future.set_exception(
                    NetworkError(reason, data={"request_id": request.id})
                )
