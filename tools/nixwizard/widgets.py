"""Reusable widgets rendered with rich.

Each widget draws itself into a ``rich.layout.Layout`` region through
``render(area)``; the actual drawing happens in ``__rich_console__`` so the
widget sees the real size of its region. ``handle_input`` returns ``Redraw``
when the event was consumed and ``Noop`` otherwise.

Input rules: a ``Modal`` intercepts every event while open, a ``TextField``
consumes keys only while focused, lists, button rows and log views only see
the events their screen forwards to them.
"""

from collections.abc import Callable, Sequence

from rich import box
from rich.align import Align
from rich.console import Console, ConsoleOptions, Group, RenderResult
from rich.layout import Layout
from rich.panel import Panel
from rich.progress_bar import ProgressBar as RichProgressBar
from rich.style import Style
from rich.table import Table
from rich.text import Text

from . import theme
from .events import KeyEvent
from .signals import Noop, Redraw, Signal


class Widget:
    """Base widget: renders into a layout region, ignores input."""

    def render(self, area: Layout) -> None:
        area.update(self)

    def handle_input(self, event) -> Signal:
        return Noop()

    def panel(self, height: int | None = None) -> Panel:
        raise NotImplementedError

    def __rich_console__(self, console: Console, options: ConsoleOptions) -> RenderResult:
        yield self.panel(options.height)


# ---------------------------------------------------------------------------
# Text input
# ---------------------------------------------------------------------------


class TextField(Widget):
    """Single-line editor with a cursor and optional secret masking."""

    def __init__(
        self,
        label: str,
        value: str = "",
        *,
        secret: bool = False,
        placeholder: str = "",
        max_length: int = 256,
    ):
        self.label = label
        self.value = value
        self.cursor = len(value)
        self.secret = secret
        self.placeholder = placeholder
        self.max_length = max_length
        self.focused = False
        self.error = ""

    def set_value(self, value: str) -> None:
        self.value = value[: self.max_length]
        self.cursor = len(self.value)
        self.error = ""

    def clear(self) -> None:
        self.set_value("")

    def handle_input(self, event) -> Signal:
        if not self.focused or not isinstance(event, KeyEvent):
            return Noop()
        key = event.key
        if event.char is not None:
            if len(self.value) >= self.max_length:
                return Noop()
            self.value = self.value[: self.cursor] + event.char + self.value[self.cursor:]
            self.cursor += 1
        elif key == "backspace":
            if self.cursor == 0:
                return Noop()
            self.value = self.value[: self.cursor - 1] + self.value[self.cursor:]
            self.cursor -= 1
        elif key == "delete":
            if self.cursor >= len(self.value):
                return Noop()
            self.value = self.value[: self.cursor] + self.value[self.cursor + 1:]
        elif key == "left":
            self.cursor = max(0, self.cursor - 1)
        elif key == "right":
            self.cursor = min(len(self.value), self.cursor + 1)
        elif key in ("home", "ctrl+a"):
            self.cursor = 0
        elif key in ("end", "ctrl+e"):
            self.cursor = len(self.value)
        elif key == "ctrl+u":
            self.value = self.value[self.cursor:]
            self.cursor = 0
        else:
            return Noop()
        self.error = ""
        return Redraw()

    @property
    def display_value(self) -> str:
        return "•" * len(self.value) if self.secret else self.value

    def panel(self, height: int | None = None) -> Panel:
        shown = self.display_value
        text = Text(no_wrap=True, overflow="ellipsis")
        if not shown and not self.focused:
            text.append(self.placeholder, style=theme.DIM)
        else:
            text.append(shown[: self.cursor])
            if self.focused:
                under = shown[self.cursor: self.cursor + 1] or " "
                text.append(under, style=theme.CURSOR)
                text.append(shown[self.cursor + 1:])
            else:
                text.append(shown[self.cursor:])
        return Panel(
            text,
            title=self.label,
            title_align="left",
            subtitle=Text(self.error, style=theme.ERROR) if self.error else None,
            border_style=theme.FOCUS_BORDER if self.focused else theme.BORDER_STYLE,
            height=height if height is None else min(height, 3),
        )


# ---------------------------------------------------------------------------
# Lists
# ---------------------------------------------------------------------------


class SelectList(Widget):
    """Single or multi-select list, optionally with columns."""

    def __init__(
        self,
        title: str,
        items: Sequence[str | Sequence[str]] = (),
        *,
        multi: bool = False,
        headers: Sequence[str] | None = None,
        checked: Sequence[int] = (),
    ):
        self.title = title
        self.multi = multi
        self.headers = list(headers) if headers else None
        self.items: list[tuple[str, ...]] = []
        self.checked: set[int] = set(checked)
        self.cursor = 0
        self.offset = 0
        self.focused = True
        self._page = 10
        self.set_items(items)

    def set_items(self, items: Sequence[str | Sequence[str]]) -> None:
        self.items = [(item,) if isinstance(item, str) else tuple(item) for item in items]
        self.checked = {i for i in self.checked if i < len(self.items)}
        self.cursor = min(self.cursor, max(0, len(self.items) - 1))

    @property
    def current(self) -> int | None:
        return self.cursor if self.items else None

    @property
    def current_item(self) -> tuple[str, ...] | None:
        return self.items[self.cursor] if self.items else None

    def move(self, delta: int) -> bool:
        if not self.items:
            return False
        target = max(0, min(len(self.items) - 1, self.cursor + delta))
        if target == self.cursor:
            return False
        self.cursor = target
        return True

    def toggle(self, index: int | None = None) -> None:
        index = self.cursor if index is None else index
        if not self.items:
            return
        if index in self.checked:
            self.checked.discard(index)
        else:
            self.checked.add(index)

    def handle_input(self, event) -> Signal:
        if not isinstance(event, KeyEvent) or not self.items:
            return Noop()
        key = event.key
        if key in ("up", "k"):
            moved = self.move(-1)
        elif key in ("down", "j"):
            moved = self.move(1)
        elif key == "home":
            moved = self.move(-len(self.items))
        elif key == "end":
            moved = self.move(len(self.items))
        elif key == "pageup":
            moved = self.move(-self._page)
        elif key == "pagedown":
            moved = self.move(self._page)
        elif key == " " and self.multi:
            self.toggle()
            moved = True
        else:
            return Noop()
        return Redraw() if moved else Noop()

    def _scroll(self, visible: int) -> None:
        visible = max(1, visible)
        self._page = visible
        if self.cursor < self.offset:
            self.offset = self.cursor
        elif self.cursor >= self.offset + visible:
            self.offset = self.cursor - visible + 1
        self.offset = max(0, min(self.offset, max(0, len(self.items) - visible)))

    def panel(self, height: int | None = None) -> Panel:
        if height is None:
            height = len(self.items) + 2 + (1 if self.headers else 0)
        visible = height - 2 - (1 if self.headers else 0)
        self._scroll(visible)

        table = Table(
            box=None,
            show_header=bool(self.headers),
            header_style=theme.DIM,
            expand=True,
            pad_edge=False,
        )
        columns = self.headers or [""] * max((len(item) for item in self.items), default=1)
        for column in columns:
            table.add_column(column, no_wrap=True, overflow="ellipsis")
        for index in range(self.offset, min(len(self.items), self.offset + visible)):
            row = list(self.items[index])
            row += [""] * (len(columns) - len(row))
            if self.multi:
                mark = "[x] " if index in self.checked else "[ ] "
                row[0] = mark + row[0]
            style = None
            if index == self.cursor:
                style = theme.SELECTED if self.focused else theme.CURSOR
            table.add_row(*row, style=style)
        if not self.items:
            table.add_row(Text("(empty)", style=theme.DIM))

        title = self.title
        if len(self.items) > visible:
            title = f"{self.title} ({self.cursor + 1}/{len(self.items)})"
        return Panel(
            table,
            title=title,
            title_align="left",
            border_style=theme.FOCUS_BORDER if self.focused else theme.BORDER_STYLE,
            height=height,
        )


# ---------------------------------------------------------------------------
# Buttons and dialogs
# ---------------------------------------------------------------------------


class ButtonRow(Widget):
    """Horizontal row of buttons; left/right move the highlight."""

    def __init__(self, labels: Sequence[str], *, focused: bool = False):
        self.labels = list(labels)
        self.index = 0
        self.focused = focused

    @property
    def selected(self) -> str:
        return self.labels[self.index]

    def select(self, label: str) -> None:
        self.index = self.labels.index(label)

    def handle_input(self, event) -> Signal:
        if not isinstance(event, KeyEvent):
            return Noop()
        if event.key in ("left", "h") and self.index > 0:
            self.index -= 1
        elif event.key in ("right", "l") and self.index < len(self.labels) - 1:
            self.index += 1
        else:
            return Noop()
        return Redraw()

    def text(self) -> Text:
        text = Text(justify="center")
        for i, label in enumerate(self.labels):
            if i:
                text.append("   ")
            active = i == self.index and self.focused
            text.append(f" {label} ", style=theme.BUTTON_ACTIVE if active else theme.BUTTON)
        return text

    def __rich_console__(self, console: Console, options: ConsoleOptions) -> RenderResult:
        yield Align.center(self.text(), vertical="middle", height=options.height)


class Modal(Widget):
    """Dialog shown over a screen body.

    ``on_submit`` receives the chosen button label and returns the Signal for
    the screen. The modal is closed before the callback runs; the callback may
    reopen it, e.g. to report a validation error in its field.
    """

    def __init__(
        self,
        title: str,
        message: str = "",
        *,
        buttons: Sequence[str] = ("OK",),
        field: TextField | None = None,
        choices: SelectList | None = None,
        on_submit: Callable[[str], Signal] | None = None,
        width: int = 64,
        style: Style | None = None,
    ):
        self.title = title
        self.message = message
        self.buttons = ButtonRow(buttons, focused=True)
        self.field = field
        self.choices = choices
        self.on_submit = on_submit
        self.width = width
        self.style = style
        self.visible = False
        if field is not None:
            field.focused = True

    def open(self) -> None:
        self.visible = True

    def close(self) -> None:
        self.visible = False

    def handle_input(self, event) -> Signal:
        if not self.visible or not isinstance(event, KeyEvent):
            return Noop()
        key = event.key
        if key == "esc":
            self.close()
            return Redraw()
        if key == "enter":
            self.close()
            if self.on_submit is None:
                return Redraw()
            return self.on_submit(self.buttons.selected)
        if key in ("tab", "backtab"):
            step = 1 if key == "tab" else -1
            self.buttons.index = (self.buttons.index + step) % len(self.buttons.labels)
            return Redraw()
        if self.field is not None:
            self.field.handle_input(event)
        elif self.choices is not None and key in ("up", "down", "home", "end", "pageup", "pagedown"):
            self.choices.handle_input(event)
        else:
            self.buttons.handle_input(event)
        # Everything is swallowed while the modal is open
        return Redraw()

    def panel(self, height: int | None = None) -> Panel:
        parts = []
        if self.message:
            parts.append(Text(self.message, style=self.style or ""))
        if self.field is not None:
            parts.append(self.field.panel())
        if self.choices is not None:
            parts.append(self.choices.panel(min(len(self.choices.items) + 2, 12)))
        parts.append(Text(""))
        parts.append(self.buttons.text())
        return Panel(
            Group(*parts),
            title=self.title,
            border_style=theme.FOCUS_BORDER,
            box=box.DOUBLE,
            width=self.width,
            padding=(1, 2),
        )

    def __rich_console__(self, console: Console, options: ConsoleOptions) -> RenderResult:
        yield Align.center(self.panel(), vertical="middle", height=options.height)


# ---------------------------------------------------------------------------
# Display-only widgets
# ---------------------------------------------------------------------------


class ProgressBar(Widget):
    def __init__(self, title: str = "Progress", total: int = 100):
        self.title = title
        self.total = total
        self.completed = 0
        self.label = ""

    def update(self, completed: int, label: str | None = None) -> None:
        self.completed = max(0, min(completed, self.total))
        if label is not None:
            self.label = label

    @property
    def percent(self) -> int:
        if not self.total:
            return 100
        return int(self.completed * 100 / self.total)

    def panel(self, height: int | None = None) -> Panel:
        bar = RichProgressBar(total=self.total, completed=self.completed)
        caption = Text(f"{self.percent:3d}%  {self.label}", no_wrap=True, overflow="ellipsis")
        return Panel(
            Group(bar, caption),
            title=self.title,
            title_align="left",
            border_style=theme.BORDER_STYLE,
            height=height,
        )


class InfoBox(Widget):
    """Static titled panel."""

    def __init__(self, title: str, body: str | Text = "", *, style: Style | None = None,
                 border_style: Style | None = None):
        self.title = title
        self.body = body
        self.style = style
        self.border_style = border_style

    def panel(self, height: int | None = None) -> Panel:
        body = self.body if isinstance(self.body, Text) else Text(self.body, style=self.style or "")
        return Panel(
            body,
            title=self.title,
            title_align="left",
            border_style=self.border_style or theme.BORDER_STYLE,
            height=height,
            padding=(0, 1),
        )


class LogView(Widget):
    """Scrolling text panel that follows the tail unless scrolled back."""

    def __init__(self, title: str = "Log", lines: Sequence[str] = ()):
        self.title = title
        self.lines: list[str] = list(lines)
        self.scroll = 0  # lines above the tail
        self._page = 10

    def append(self, line: str) -> None:
        self.lines.append(line)
        if self.scroll:
            self.scroll += 1

    def set_lines(self, lines: Sequence[str]) -> None:
        self.lines = list(lines)
        self.scroll = 0

    def handle_input(self, event) -> Signal:
        if not isinstance(event, KeyEvent):
            return Noop()
        limit = max(0, len(self.lines) - 1)
        before = self.scroll
        if event.key == "up":
            self.scroll += 1
        elif event.key == "down":
            self.scroll -= 1
        elif event.key == "pageup":
            self.scroll += self._page
        elif event.key == "pagedown":
            self.scroll -= self._page
        elif event.key == "home":
            self.scroll = limit
        elif event.key == "end":
            self.scroll = 0
        else:
            return Noop()
        self.scroll = max(0, min(self.scroll, limit))
        return Redraw() if self.scroll != before else Noop()

    def visible_lines(self, rows: int) -> list[str]:
        rows = max(1, rows)
        self._page = rows
        self.scroll = max(0, min(self.scroll, max(0, len(self.lines) - rows)))
        end = len(self.lines) - self.scroll
        return self.lines[max(0, end - rows): end]

    def panel(self, height: int | None = None) -> Panel:
        rows = (height - 2) if height else len(self.lines)
        text = Text(no_wrap=True, overflow="ellipsis")
        for i, line in enumerate(self.visible_lines(rows)):
            if i:
                text.append("\n")
            text.append(line)
        title = self.title if not self.scroll else f"{self.title} (scrolled, End to follow)"
        return Panel(text, title=title, title_align="left",
                     border_style=theme.BORDER_STYLE, height=height)
