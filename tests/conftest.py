"""
Shared fixtures for the installer tests.

Provides:
- Sample disks and a fully populated installer state
- A recording command runner that never touches the system
- Rendering of pages to plain text
"""

from io import StringIO

import pytest
from rich.console import Console
from rich.layout import Layout

from nixwizard.disks import Disk, ExistingPartition, build_scheme
from nixwizard.events import KeyEvent
from nixwizard.resources import GIB
from nixwizard.state import InstallerState, UserAccount

HASH = "$6$rounds=4096$saltsalt$0123456789abcdefghijklmnopqrstuvwxyzABCDEF"


# ─────────────────────────────────────────────────────────────────────────────
# Disks
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def sample_disk() -> Disk:
    """An empty 64 GiB SATA disk."""
    return Disk(name="sda", path="/dev/sda", size=64 * GIB, model="Test SSD", transport="SATA")


@pytest.fixture
def nvme_disk() -> Disk:
    """A 512 GiB NVMe disk carrying an old partition."""
    return Disk(
        name="nvme0n1",
        path="/dev/nvme0n1",
        size=512 * GIB,
        model="Fast NVMe",
        transport="NVME",
        partitions=[ExistingPartition("nvme0n1p1", 512 * GIB, "ext4", "old")],
    )


@pytest.fixture
def small_disk() -> Disk:
    return Disk(name="sdb", path="/dev/sdb", size=8 * GIB, model="Tiny stick", transport="USB")


# ─────────────────────────────────────────────────────────────────────────────
# State
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def populated_state(sample_disk) -> InstallerState:
    """A state that passes every validation."""
    state = InstallerState()
    state.select_device(sample_disk)
    state.set_partitions("swap", build_scheme("swap", sample_disk.size, memory=2 * GIB))
    state.hostname = "testbox"
    state.timezone = "Europe/Berlin"
    state.locale = "de_DE.UTF-8"
    state.keyboard_layout = "de"
    state.desktop = "gnome"
    state.users = [
        UserAccount("alice", HASH, admin=True),
        UserAccount("bob", HASH, groups=["audio"]),
    ]
    state.root_password_hash = HASH
    state.packages = ["git", "vim", "firefox"]
    state.dry_run = True
    return state


def apply_scheme(state: InstallerState, scheme: str) -> None:
    """Store one of the preset plans on ``state``."""
    state.set_partitions(scheme, build_scheme(scheme, state.target_device_size, state.root_filesystem))


# ─────────────────────────────────────────────────────────────────────────────
# Runner
# ─────────────────────────────────────────────────────────────────────────────


class RecordingRunner:
    """Stands in for CommandRunner; records commands and written files."""

    def __init__(self, log_callback=None, fail_on: str | None = None):
        self.log = log_callback or (lambda line: None)
        self.commands: list[list[str]] = []
        self.files: dict[str, str] = {}
        self.fail_on = fail_on
        self.closed = False

    def run(self, cmd, check=True, env=None):
        from subprocess import CompletedProcess

        from nixwizard.backend import CommandError

        self.commands.append(list(cmd))
        self.log(">>> " + " ".join(cmd))
        if self.fail_on is not None and cmd[0] == self.fail_on:
            if check:
                raise CommandError(list(cmd), 1)
            return CompletedProcess(cmd, 1, "", "")
        return CompletedProcess(cmd, 0, "", "")

    def write_file(self, path, content):
        self.files[path] = content

    def close(self):
        self.closed = True


@pytest.fixture
def runner() -> RecordingRunner:
    return RecordingRunner()


# ─────────────────────────────────────────────────────────────────────────────
# Rendering
# ─────────────────────────────────────────────────────────────────────────────


def render_text(page, state, width: int = 100, height: int = 30) -> str:
    """Render ``page`` into a plain-text screen of the given size."""
    console = Console(file=StringIO(), width=width, height=height,
                      color_system=None, legacy_windows=False)
    layout = Layout()
    page.render(state, layout)
    console.print(layout)
    return console.file.getvalue()


def keys(*names: str) -> list[KeyEvent]:
    return [KeyEvent(name) for name in names]


def send(page, state, *names: str):
    """Feed key presses to ``page``; returns the last signal."""
    signal = None
    for event in keys(*names):
        signal = page.handle_input(state, event)
    return signal


def type_text(page, state, text: str):
    return send(page, state, *list(text))
