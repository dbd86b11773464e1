"""Operation progress.

A percentage that only moves forward while an operation runs, then drops
back to zero a short while after the operation finishes so a UI can show the
final value before clearing it.
"""

import asyncio
from typing import Callable, List, Optional

ProgressListener = Callable[[float], None]

# Phase boundaries shared by the import flows
READ = 20.0
PARSED = 40.0
NORMALIZED = 60.0
PRODUCTS = (60.0, 70.0)
CUSTOMERS = (70.0, 80.0)
INVOICES = (80.0, 90.0)
BILLS = (90.0, 100.0)
SELECTIVE = (70.0, 100.0)


class ProgressTracker:
    """Monotonic percentage with delayed reset.

    Attributes:
        reset_delay: Seconds the final value stays visible
        history: Every value reported, in order
    """

    def __init__(self, reset_delay: float = 2.0, listener: Optional[ProgressListener] = None):
        self.reset_delay = reset_delay
        self.listener = listener
        self.history: List[float] = []
        self._value = 0.0
        self._reset_handle: Optional[asyncio.TimerHandle] = None

    @property
    def value(self) -> float:
        return self._value

    def _emit(self, value: float) -> None:
        self._value = value
        self.history.append(value)
        if self.listener is not None:
            self.listener(value)

    def start(self) -> None:
        """Begin a new operation at zero."""
        if self._reset_handle is not None:
            self._reset_handle.cancel()
            self._reset_handle = None
        self._emit(0.0)

    def advance(self, percent: float) -> float:
        """Move to ``percent`` unless already past it."""
        percent = max(0.0, min(100.0, float(percent)))
        if percent > self._value:
            self._emit(round(percent, 2))
        return self._value

    def step(self, span: tuple, index: int, count: int) -> float:
        """Advance to record ``index`` of ``count`` within a phase span."""
        start, end = span
        if count <= 0:
            return self.advance(start)
        return self.advance(start + (end - start) * index / count)

    def finish(self) -> None:
        """Report 100 and schedule the reset."""
        self.advance(100.0)
        self.schedule_reset()

    def schedule_reset(self) -> None:
        """Reset to zero after ``reset_delay``.

        Immediate when the delay is not positive or no event loop is running.
        """
        if self._reset_handle is not None:
            self._reset_handle.cancel()
            self._reset_handle = None
        if self.reset_delay <= 0:
            self.reset()
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.reset()
            return
        self._reset_handle = loop.call_later(self.reset_delay, self.reset)

    def reset(self) -> None:
        self._reset_handle = None
        if self._value != 0.0:
            self._emit(0.0)
