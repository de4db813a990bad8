"""Textual host for the wizard: one screen feeding keys, resizes and ticks."""

import logging
import sys

from textual import events
from textual.app import App, ComposeResult
from textual.screen import Screen
from textual.widgets import Static

from .events import Event, KeyEvent, Resize, Tick
from .resources import TICK_RATE
from .signals import Noop

logger = logging.getLogger(__name__)

# textual key names that the pages know under another name
_KEY_NAMES = {
    "escape": "esc",
    "shift+tab": "backtab",
    "ctrl+i": "tab",
    "ctrl+m": "enter",
    "ctrl+j": "enter",
    "ctrl+h": "backspace",
}


def has_terminal() -> bool:
    return sys.stdin.isatty() and sys.stdout.isatty()


def key_event(event: events.Key) -> KeyEvent:
    """Translate a textual key press into the wizard's key names."""
    if event.is_printable and event.character:
        return KeyEvent(event.character)
    return KeyEvent(_KEY_NAMES.get(event.key, event.key))


class WizardScreen(Screen):
    """Full-screen frame showing whatever the wizard draws.

    Every key, resize and timer tick is passed to ``Wizard.dispatch``; the
    frame is redrawn unless the signal was Noop.
    """

    DEFAULT_CSS = """
    WizardScreen {
        layout: vertical;
    }

    #frame {
        width: 1fr;
        height: 1fr;
    }
    """

    def __init__(self, wizard, tick_rate: float = TICK_RATE):
        super().__init__()
        self.wizard = wizard
        self.tick_rate = tick_rate
        self._ready = False

    def compose(self) -> ComposeResult:
        yield Static(id="frame")

    def on_mount(self) -> None:
        self._ready = True
        self.set_interval(self.tick_rate, self._tick)
        self.redraw()

    def redraw(self) -> None:
        self.query_one("#frame", Static).update(self.wizard.draw())

    def feed(self, event: Event) -> None:
        signal = self.wizard.dispatch(event)
        if not self.wizard.running:
            self.app.exit(self.wizard.exit_code, return_code=self.wizard.exit_code)
        elif not isinstance(signal, Noop):
            self.redraw()

    def _tick(self) -> None:
        if self.wizard.running:
            self.feed(Tick())

    def on_key(self, event: events.Key) -> None:
        # Keep textual's own bindings (focus cycling, copy, quit) away from the pages
        event.stop()
        event.prevent_default()
        if self.wizard.running:
            self.feed(key_event(event))

    def on_resize(self, event: events.Resize) -> None:
        if self._ready and self.wizard.running:
            self.feed(Resize(event.size.width, event.size.height))


class WizardApp(App[int]):
    """Runs a wizard until one of its pages stops it."""

    TITLE = "NixOS Setup"
    ENABLE_COMMAND_PALETTE = False

    def __init__(self, wizard, tick_rate: float = TICK_RATE):
        super().__init__()
        self.wizard = wizard
        self.tick_rate = tick_rate

    def get_default_screen(self) -> Screen:
        return WizardScreen(self.wizard, self.tick_rate)

    def action_quit(self) -> None:
        # ctrl+q behaves like ctrl+c, which busy pages ignore
        screen = self.screen
        if isinstance(screen, WizardScreen) and self.wizard.running:
            screen.feed(KeyEvent("ctrl+c"))
