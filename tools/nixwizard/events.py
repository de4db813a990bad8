"""Input events delivered by the terminal host."""

from dataclasses import dataclass


@dataclass(frozen=True)
class KeyEvent:
    """A key press with a normalised name such as ``up``, ``enter`` or ``a``."""

    key: str

    @property
    def char(self) -> str | None:
        """The printable character, or None for named keys."""
        if len(self.key) == 1 and self.key.isprintable():
            return self.key
        return None


@dataclass(frozen=True)
class Tick:
    """Periodic event from the host's interval timer."""


@dataclass(frozen=True)
class Resize:
    width: int
    height: int


Event = KeyEvent | Tick | Resize
