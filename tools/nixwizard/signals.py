"""Signals returned by screens and widgets to steer the navigation runtime."""

from dataclasses import dataclass
from typing import Any


class Signal:
    """Base class of the closed set of navigation outcomes."""

    __slots__ = ()


@dataclass(frozen=True)
class Push(Signal):
    """Push a new screen; it becomes active on the next iteration."""

    screen: Any


@dataclass(frozen=True)
class Pop(Signal):
    """Remove the active screen. Popping the last one terminates."""


@dataclass(frozen=True)
class PopCount(Signal):
    """Pop up to ``count`` screens, never the root."""

    count: int

    def __post_init__(self):
        if self.count < 0:
            raise ValueError(f"PopCount needs a non-negative count, got {self.count}")


@dataclass(frozen=True)
class Unwind(Signal):
    """Pop back to the root screen."""


@dataclass(frozen=True)
class Quit(Signal):
    """Terminate the runtime regardless of stack depth."""

    exit_code: int = 0


@dataclass(frozen=True)
class Error(Signal):
    """Show the fatal-error screen.

    Recoverable errors may be dismissed with Pop, returning to the screen
    that raised them; all others only allow Quit.
    """

    message: str
    log: str = ""
    recoverable: bool = False


@dataclass(frozen=True)
class Redraw(Signal):
    """Something changed; no stack change."""


@dataclass(frozen=True)
class Noop(Signal):
    """Nothing happened; no stack change."""
