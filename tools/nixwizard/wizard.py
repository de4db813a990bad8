"""Navigation runtime: a stack of pages driven by terminal events."""

import logging

from rich.layout import Layout

from .events import KeyEvent, Resize
from .pages import FatalErrorPage, Page
from .resources import TICK_RATE
from .signals import Error, Noop, Pop, PopCount, Push, Quit, Redraw, Signal, Unwind
from .state import InstallerState
from .terminal import WizardApp

logger = logging.getLogger(__name__)


class Wizard:
    """Owns the page stack; only the top page is drawn and receives input.

    The stack is never empty while the wizard is running. Popping the last
    page, or a Quit signal, stops the loop.
    """

    def __init__(self, state: InstallerState, root: Page):
        self.state = state
        self.stack: list[Page] = [root]
        self.running = True
        self.exit_code = 0

    @property
    def active(self) -> Page:
        return self.stack[-1]

    def draw(self) -> Layout:
        layout = Layout(name="root")
        self.active.render(self.state, layout)
        return layout

    def dispatch(self, event) -> Signal:
        """Hand one event to the active page and apply its signal."""
        if isinstance(event, Resize):
            logger.debug("Terminal resized to %dx%d", event.width, event.height)
            signal = Redraw()
        elif isinstance(event, KeyEvent) and event.key == "ctrl+c" and not self.active.busy:
            signal = Quit(exit_code=130)
        else:
            signal = self.active.handle_input(self.state, event)
        self.apply(signal)
        return signal

    def apply(self, signal: Signal) -> None:
        if isinstance(signal, Push):
            logger.debug("Push %s", type(signal.screen).__name__)
            self.stack.append(signal.screen)
        elif isinstance(signal, Pop):
            self.stack.pop()
            if not self.stack:
                logger.debug("Last page popped")
                self._stop(0)
        elif isinstance(signal, PopCount):
            count = min(signal.count, len(self.stack) - 1)
            if count:
                del self.stack[-count:]
        elif isinstance(signal, Unwind):
            del self.stack[1:]
        elif isinstance(signal, Error):
            logger.error("Error screen: %s", signal.message)
            self.stack.append(FatalErrorPage(signal.message, signal.log, signal.recoverable))
        elif isinstance(signal, Quit):
            self._stop(signal.exit_code)
        elif isinstance(signal, (Redraw, Noop)):
            pass
        else:
            raise TypeError(f"Unknown signal: {signal!r}")

    def _stop(self, exit_code: int) -> None:
        self.running = False
        self.exit_code = exit_code
        logger.info("Wizard stopping (exit code %d)", exit_code)

    def run(self, tick_rate: float = TICK_RATE) -> int:
        """Show the wizard in the terminal until a page stops it."""
        app = WizardApp(self, tick_rate)
        app.run(mouse=False)
        return app.return_code or 0
