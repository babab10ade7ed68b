"""
Progress reporting for a pipeline run.

A run shows a single progress line.  Intermediate updates may be emitted any
number of times, but the line must be finished exactly once: several code
paths (file writers, webhook dispatchers, the orchestrator itself) can each
decide that they are the last step.  :class:`ProgressCoordinator` owns the
"already finalized" flag and guarantees that only the first of them renders
a terminal message.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional, Protocol

from tqdm import tqdm

logger = logging.getLogger(__name__)

SUCCESS_SYMBOL = "✔"
WARNING_SYMBOL = "⚠️"
ERROR_SYMBOL = "❌"


class ProgressIndicator(Protocol):
    """Interface of the visible progress line."""

    def update(self, text: str) -> None: ...

    def success(self, text: str) -> None: ...

    def warn(self, text: str) -> None: ...

    def fail(self, text: str) -> None: ...

    def echo(self, text: str) -> None: ...


class Spinner:
    """Open-ended tqdm bar showing the current step and the elapsed time.

    A daemon thread refreshes the bar so the elapsed time keeps moving while
    the main thread blocks on a network call.
    """

    def __init__(self, text: str, *, refresh_interval: float = 0.5) -> None:
        self._bar = tqdm(
            total=None,
            desc=text,
            bar_format="{desc} {elapsed}",
            leave=False,
            dynamic_ncols=True,
        )
        self._refresh_interval = refresh_interval
        self._stopped = threading.Event()
        self._thread = threading.Thread(target=self._refresh_loop, daemon=True)
        self._thread.start()

    def _refresh_loop(self) -> None:
        while not self._stopped.wait(self._refresh_interval):
            self._bar.refresh()

    def update(self, text: str) -> None:
        self._bar.set_description_str(text)

    def success(self, text: str) -> None:
        self._stop(SUCCESS_SYMBOL, text)

    def warn(self, text: str) -> None:
        self._stop(WARNING_SYMBOL, text)

    def fail(self, text: str) -> None:
        self._stop(ERROR_SYMBOL, text)

    def echo(self, text: str) -> None:
        tqdm.write(text)

    def _stop(self, symbol: str, text: str) -> None:
        self._stopped.set()
        self._thread.join()
        self._bar.close()
        tqdm.write(f"{symbol} {text}")


class ProgressCoordinator:
    """Guards the single terminal message of a run.

    The indicator is shared by reference with every component that can end
    the run.  ``try_finalize`` is a check-and-set under a lock, so the
    refresh thread of the indicator and the pipeline never both see the flag
    unset.
    """

    def __init__(self, indicator: Optional[ProgressIndicator] = None) -> None:
        self._indicator = indicator
        self._lock = threading.Lock()
        self._finalized = False

    @property
    def finalized(self) -> bool:
        with self._lock:
            return self._finalized

    def attach(self, indicator: ProgressIndicator) -> None:
        """Use ``indicator`` for all following updates."""
        self._indicator = indicator

    def reset(self) -> None:
        with self._lock:
            self._finalized = False

    def try_finalize(self, action: Callable[[], None]) -> bool:
        """Run ``action`` unless the run was already finalized.

        Returns ``True`` when ``action`` ran.  The flag is set even if
        ``action`` raises, so a half-closed indicator is never closed twice.
        """
        with self._lock:
            if self._finalized:
                logger.debug("Progress already finalized; skipping terminal message")
                return False
            try:
                action()
            finally:
                self._finalized = True
            return True

    # Non-terminal updates bypass the flag.

    def update(self, text: str) -> None:
        if self._indicator is not None:
            self._indicator.update(text)

    def echo(self, text: str) -> None:
        if self._indicator is not None:
            self._indicator.echo(text)
        else:
            print(text)

    # Terminal messages, each at most once per run.

    def succeed(self, text: str) -> bool:
        return self.try_finalize(lambda: self._terminal("success", text))

    def warn(self, text: str) -> bool:
        return self.try_finalize(lambda: self._terminal("warn", text))

    def fail(self, text: str) -> bool:
        return self.try_finalize(lambda: self._terminal("fail", text))

    def _terminal(self, kind: str, text: str) -> None:
        if self._indicator is None:
            symbol = {"success": SUCCESS_SYMBOL, "warn": WARNING_SYMBOL, "fail": ERROR_SYMBOL}[kind]
            print(f"{symbol} {text}")
            return
        getattr(self._indicator, kind)(text)
