"""Progress reporting and cancellation helpers for async conversions."""

from __future__ import annotations

import asyncio
import threading
from typing import Protocol

from tqdm import tqdm


class ProgressReporter(Protocol):
    """Lightweight progress reporter abstraction."""

    def start(self, total: int) -> None: ...

    def increment(self) -> None: ...

    def close(self) -> None: ...


class TqdmProgressReporter:
    """Progress reporter backed by tqdm."""

    def __init__(self, desc: str, unit: str = "page", update_interval: float = 1.0) -> None:
        self._desc = desc
        self._unit = unit
        self._update_interval = update_interval
        self._pbar: tqdm | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._tick_handle: asyncio.TimerHandle | None = None

    def start(self, total: int) -> None:
        if self._pbar is not None:
            self._pbar.reset(total=total)
            return
        self._pbar = tqdm(
            total=total,
            desc=self._desc,
            unit=self._unit,
            smoothing=0,
            leave=False,
        )
        try:
            self._loop = asyncio.get_running_loop()
        except RuntimeError:  # sync contexts have no loop to tick on
            self._loop = None
        if self._loop and self._update_interval > 0:
            self._schedule_tick()

    def _schedule_tick(self) -> None:
        if not self._loop or self._tick_handle is not None or self._pbar is None:
            return
        self._tick_handle = self._loop.call_later(self._update_interval, self._tick)

    def _tick(self) -> None:
        self._tick_handle = None
        if self._pbar is None:
            return
        self._pbar.refresh()
        if self._loop and self._update_interval > 0:
            self._schedule_tick()

    def increment(self) -> None:
        if self._pbar is not None:
            self._pbar.update(1)

    def close(self) -> None:
        if self._tick_handle is not None:
            self._tick_handle.cancel()
            self._tick_handle = None
        if self._pbar is not None:
            self._pbar.close()
            self._pbar = None
        self._loop = None


class CancellationToken:
    """Thread-safe flag polled by processors at each page boundary."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self._reason: str | None = None

    def cancel(self, reason: str | None = None) -> None:
        self._reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        return self._reason


__all__ = ["CancellationToken", "ProgressReporter", "TqdmProgressReporter"]
