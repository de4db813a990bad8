"""Visual theme constants as rich styles."""

from rich.style import Style

STATUS_COLORS = {
    "green": "#27ae60",
    "yellow": "#f39c12",
    "red": "#c0392b",
}

BG_PRIMARY = "#1a1a2e"
BORDER = "#0f3460"
ACCENT = "#e94560"
TEXT_PRIMARY = "#e0e0e0"
TEXT_DIM = "#888888"

TITLE = Style(color=ACCENT, bold=True)
HEADER = Style(color=TEXT_PRIMARY, bgcolor="#0d1b2a", bold=True)
BORDER_STYLE = Style(color=BORDER)
FOCUS_BORDER = Style(color=ACCENT)
DIM = Style(color=TEXT_DIM)
SELECTED = Style(color="white", bgcolor=BORDER, bold=True)
CURSOR = Style(reverse=True)
ERROR = Style(color=STATUS_COLORS["red"], bold=True)
WARNING = Style(color=STATUS_COLORS["yellow"], bold=True)
SUCCESS = Style(color=STATUS_COLORS["green"], bold=True)
BUTTON = Style(color=TEXT_PRIMARY, bgcolor="#16213e")
BUTTON_ACTIVE = Style(color="white", bgcolor=ACCENT, bold=True)

# Pipeline step status -> (marker, colour)
STEP_MARKERS = {
    "pending": ("○", TEXT_DIM),
    "running": ("▶", STATUS_COLORS["yellow"]),
    "succeeded": ("✓", STATUS_COLORS["green"]),
    "failed": ("✗", STATUS_COLORS["red"]),
    "not started": ("-", TEXT_DIM),
}
