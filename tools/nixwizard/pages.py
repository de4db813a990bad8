"""Wizard pages for the NixOS installer."""

import copy
import json
import logging
import re
import subprocess
from functools import partial

from rich.layout import Layout
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from . import theme
from .backend import CommandRunner, InstallError, PreflightError, hash_password
from .disks import (
    LABEL_LIMITS,
    Disk,
    PartitionSpec,
    build_scheme,
    check_label,
    check_mount_point,
    default_label,
    find_disk,
    fixed_size,
    format_size,
    parse_size,
    plan_fits,
    plan_problems,
    scan_disks,
)
from .events import KeyEvent
from .nixgen import write_configs
from .pipeline import Orchestrator, StepStatus, preflight
from .resources import (
    AUDIO_BACKENDS,
    BOOTLOADERS,
    CUSTOM_SCHEME,
    DESKTOPS,
    FILESYSTEMS,
    HELP_TEXT,
    IRREVERSIBLE_WARNING,
    KERNELS,
    KEYBOARD_LAYOUTS,
    LOCALES,
    MIB,
    MIN_DISK_SIZE,
    NETWORK_BACKENDS,
    PACKAGE_CATALOGUE,
    PARTIAL_STATE_NOTICE,
    PARTITION_FILESYSTEMS,
    PARTITION_SCHEMES,
    TIMEZONES,
    WELCOME_TEXT,
)
from .signals import Error, Noop, Pop, Push, Quit, Redraw, Signal, Unwind
from .state import HOSTNAME_RE, RESERVED_USERNAMES, USERNAME_RE, InstallerState, UserAccount
from .widgets import ButtonRow, InfoBox, LogView, Modal, ProgressBar, SelectList, TextField
from .workers import Finished, InstallWorker, LogUpdate, StepUpdate, UpdateChannel

logger = logging.getLogger(__name__)

PACKAGE_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_.'-]*$")

# Number of progress dots in the header (welcome .. install)
WIZARD_STEPS = 10


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _header(title: str, step: int | None) -> Panel:
    grid = Table.grid(expand=True)
    grid.add_column()
    grid.add_column(justify="right")
    dots = Text()
    for i in range(WIZARD_STEPS):
        active = step is not None and i <= step
        dots.append("● ", style=theme.ACCENT if active else "#333333")
    grid.add_row(Text(f"NixOS Setup  ·  {title}", style=theme.TITLE), dots)
    return Panel(grid, style=theme.HEADER, border_style=theme.BORDER_STYLE)


def _footer(hints: tuple[str, ...]) -> Text:
    return Text("  ·  ".join(hints), style=theme.DIM, no_wrap=True, overflow="ellipsis")


def _error_box(message: str) -> InfoBox:
    return InfoBox("", message, style=theme.ERROR, border_style=theme.ERROR)


def _choice_modal(title: str, options: dict[str, str] | list[str], current: str,
                  apply) -> Modal:
    """Modal listing ``options``; ``apply`` receives the chosen key."""
    keys = list(options)
    labels = [options[k] for k in keys] if isinstance(options, dict) else keys
    choices = SelectList(title, labels)
    if current in keys:
        choices.cursor = keys.index(current)

    def on_submit(button: str) -> Signal:
        if button != "Select" or choices.current is None:
            return Redraw()
        apply(keys[choices.current])
        return Redraw()

    return Modal(title, choices=choices, buttons=("Select", "Cancel"), on_submit=on_submit)


class Page:
    """Base wizard page: header, body and footer hints, plus a help modal.

    Subclasses draw their body in ``render_body`` and react to events in
    ``handle_event``. An open modal receives every event first.
    """

    title = ""
    step: int | None = None
    help_key = "default"
    hints: tuple[str, ...] = ()

    def __init__(self):
        self._help = Modal("Help", HELP_TEXT[self.help_key], buttons=("Close",))
        self.modal: Modal | None = None

    def open_modal(self, modal: Modal) -> Signal:
        self.modal = modal
        modal.open()
        return Redraw()

    def active_modal(self) -> Modal | None:
        for modal in (self._help, self.modal):
            if modal is not None and modal.visible:
                return modal
        return None

    @property
    def typing(self) -> bool:
        """True while a text field has focus and owns printable keys."""
        return False

    @property
    def busy(self) -> bool:
        """True while leaving the page would abandon running work."""
        return False

    def render(self, state: InstallerState, area: Layout) -> None:
        area.split_column(
            Layout(name="header", size=3),
            Layout(name="body", ratio=1),
            Layout(name="footer", size=1),
        )
        area["header"].update(_header(self.title, self.step))
        modal = self.active_modal()
        if modal is not None:
            modal.render(area["body"])
        else:
            self.render_body(state, area["body"])
        area["footer"].update(_footer(self.hints + ("? help",)))

    def handle_input(self, state: InstallerState, event) -> Signal:
        modal = self.active_modal()
        if modal is not None:
            return modal.handle_input(event)
        if isinstance(event, KeyEvent) and event.key == "?" and not self.typing:
            self._help.open()
            return Redraw()
        return self.handle_event(state, event)

    def render_body(self, state: InstallerState, area: Layout) -> None:
        raise NotImplementedError

    def handle_event(self, state: InstallerState, event) -> Signal:
        return Noop()


# ---------------------------------------------------------------------------
# Page 0: Welcome
# ---------------------------------------------------------------------------


class WelcomePage(Page):
    title = "Welcome"
    step = 0
    help_key = "welcome"
    hints = ("←/→ choose", "Enter confirm", "q quit")

    def __init__(self):
        super().__init__()
        self._buttons = ButtonRow(["Begin", "Quit"], focused=True)

    def render_body(self, state, area):
        area.split_column(Layout(name="info", ratio=1), Layout(name="buttons", size=3))
        InfoBox("Welcome to the NixOS installer", WELCOME_TEXT).render(area["info"])
        self._buttons.render(area["buttons"])

    def handle_event(self, state, event):
        if not isinstance(event, KeyEvent):
            return Noop()
        if event.key in ("q", "esc"):
            return Quit()
        if event.key == "enter":
            if self._buttons.selected == "Quit":
                return Quit()
            return Push(DiskSelectPage(state))
        return self._buttons.handle_input(event)


# ---------------------------------------------------------------------------
# Page 1: Disk selection
# ---------------------------------------------------------------------------


class DiskSelectPage(Page):
    """Lists block devices; Enter targets the highlighted disk."""

    title = "Select Drive"
    step = 1
    help_key = "disks"
    hints = ("↑/↓ move", "Enter select", "r rescan", "Esc back")

    def __init__(self, state: InstallerState, disks: list[Disk] | None = None):
        super().__init__()
        self._list = SelectList("Disks", headers=["Device", "Model", "Bus", "Size", "Mounted"])
        self._error = ""
        self.disks: list[Disk] = []
        if disks is None:
            self.rescan()
        else:
            self._set_disks(disks)
        for i, disk in enumerate(self.disks):
            if disk.path == state.target_device:
                self._list.cursor = i

    def _set_disks(self, disks: list[Disk]) -> None:
        self.disks = disks
        self._list.set_items([
            (d.path, d.model, d.transport, d.size_display, ", ".join(d.mounted) or "-")
            for d in disks
        ])

    def rescan(self) -> None:
        self._error = ""
        try:
            self._set_disks(scan_disks())
        except (OSError, subprocess.CalledProcessError, json.JSONDecodeError) as e:
            self._set_disks([])
            self._error = f"Disk scan failed: {e}"
        if not self.disks and not self._error:
            self._error = "No disks found. Attach a disk and press r to rescan."

    def render_body(self, state, area):
        area.split_column(Layout(name="list", ratio=1), Layout(name="details", size=7))
        self._list.render(area["list"])
        if self._error:
            _error_box(self._error).render(area["details"])
            return
        disk = self.disks[self._list.cursor] if self.disks else None
        if disk is None:
            return
        lines = [f"{disk.path}  {disk.model}  {disk.size_display}"]
        for part in disk.partitions[:3]:
            lines.append(f"  {part.name}  {format_size(part.size)}  {part.fs_type or '-'}"
                         f"  {part.label or ''}")
        if len(disk.partitions) > 3:
            lines.append(f"  … {len(disk.partitions) - 3} more")
        InfoBox("All data on this disk will be erased", "\n".join(lines),
                border_style=theme.WARNING).render(area["details"])

    def handle_event(self, state, event):
        if not isinstance(event, KeyEvent):
            return Noop()
        if event.key == "esc":
            return Pop()
        if event.key == "r":
            self.rescan()
            return Redraw()
        if event.key == "enter":
            if not self.disks:
                return Noop()
            disk = self.disks[self._list.cursor]
            if disk.size < MIN_DISK_SIZE:
                self._error = (f"{disk.path} is too small ({disk.size_display}); "
                               f"at least {format_size(MIN_DISK_SIZE)} is required.")
                return Redraw()
            if disk.mounted:
                self._error = (f"{disk.path} has mounted partitions "
                               f"({', '.join(disk.mounted)}). Unmount them first.")
                return Redraw()
            state.select_device(disk)
            logger.info("Selected target %s (%s)", disk.path, disk.size_display)
            return Push(PartitionSchemePage(state))
        signal = self._list.handle_input(event)
        if isinstance(signal, Redraw):
            self._error = ""
        return signal


# ---------------------------------------------------------------------------
# Page 2: Partition scheme
# ---------------------------------------------------------------------------


class PartitionSchemePage(Page):
    """Choose a preset layout, then optionally adjust it partition by partition.

    The page owns the plan being edited; NewPartitionPage and
    AlterPartitionPage change it through ``add_partition``,
    ``replace_partition`` and ``remove_partition``. Nothing reaches the state
    before the user continues.
    """

    title = "Partition Scheme"
    step = 2
    help_key = "scheme"
    hints = ("↑/↓ move", "Tab switch", "Enter size", "a add", "e edit", "c continue", "Esc back")

    def __init__(self, state: InstallerState):
        super().__init__()
        self._keys = list(PARTITION_SCHEMES)
        self._schemes = SelectList("Layout", [PARTITION_SCHEMES[k]["name"] for k in self._keys])
        self._table = SelectList("Partitions", headers=["#", "Label", "Mount", "Filesystem", "Size"])
        self._table.focused = False
        self._capacity = state.target_device_size
        self._fs_type = state.root_filesystem
        self._error = ""
        keep = state.partition_scheme in self._keys or state.partition_scheme == CUSTOM_SCHEME
        if keep and state.partitions:
            self._scheme = state.partition_scheme
            self._plan = copy.deepcopy(state.partitions)
        else:
            self._scheme = self._keys[0]
            self._plan = build_scheme(self._scheme, self._capacity, self._fs_type)
        if self._scheme in self._keys:
            self._schemes.cursor = self._keys.index(self._scheme)
        self._sync_table()

    @property
    def plan(self) -> list[PartitionSpec]:
        return self._plan

    @property
    def scheme(self) -> str:
        return self._scheme

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def free_space(self) -> int:
        """Bytes left for a new fixed-size partition."""
        return max(0, self._capacity - fixed_size(self._plan) - 2 * MIB)

    def _sync_table(self) -> None:
        self._table.set_items([
            (str(n), p.label, p.mountpoint or ("[swap]" if p.fs_type == "swap" else "-"),
             p.fs_type, self._size_text(p))
            for n, p in enumerate(self._plan, start=1)
        ])

    def _size_text(self, spec: PartitionSpec) -> str:
        if spec.size is None:
            rest = self._capacity - fixed_size(self._plan)
            return f"rest ({format_size(max(0, rest))})"
        return format_size(spec.size)

    # -- Editing ------------------------------------------------------------

    def _commit(self, candidate: list[PartitionSpec]) -> None:
        """Adopt ``candidate`` as a custom plan; raises ValueError if unusable."""
        if not plan_fits(candidate, self._capacity):
            raise ValueError("Partitions exceed the disk capacity")
        problems = plan_problems(candidate, complete=False)
        if problems:
            raise ValueError(problems[0])
        self._plan = candidate
        self._scheme = CUSTOM_SCHEME
        self._error = ""
        self._sync_table()

    def add_partition(self, spec: PartitionSpec) -> None:
        """Insert ``spec`` before the partition taking the rest of the disk."""
        candidate = copy.deepcopy(self._plan)
        rest = next((i for i, p in enumerate(candidate) if p.size is None), None)
        if rest is None or spec.size is None:
            candidate.append(spec)
        else:
            candidate.insert(rest, spec)
        self._commit(candidate)
        logger.info("Added partition %s (%s)", spec.label, spec.mountpoint or spec.fs_type)

    def replace_partition(self, index: int, spec: PartitionSpec) -> None:
        candidate = copy.deepcopy(self._plan)
        candidate[index] = spec
        self._commit(candidate)

    def remove_partition(self, index: int) -> None:
        candidate = copy.deepcopy(self._plan)
        removed = candidate.pop(index)
        self._commit(candidate)
        logger.info("Removed partition %s", removed.label)

    def problems(self) -> list[str]:
        """Reasons the plan cannot be used yet."""
        problems = []
        if not plan_fits(self._plan, self._capacity):
            problems.append("Partition sizes exceed the capacity of the disk; shrink a partition.")
        if not any(p.mountpoint == "/" for p in self._plan):
            problems.append("No partition is mounted at /")
        if not any(p.is_esp for p in self._plan):
            problems.append("Add a FAT32 partition mounted at /boot")
        return problems + plan_problems(self._plan)

    # -- Rendering ----------------------------------------------------------

    def render_body(self, state, area):
        area.split_row(Layout(name="left", ratio=1), Layout(name="right", ratio=2))
        area["left"].split_column(Layout(name="schemes", ratio=1), Layout(name="about", size=6))
        self._schemes.render(area["left"]["schemes"])
        if self._scheme == CUSTOM_SCHEME:
            about = "Custom layout edited by hand. Choosing a layout replaces it."
        else:
            about = PARTITION_SCHEMES[self._scheme]["description"]
        InfoBox("About", about).render(area["left"]["about"])

        self._sync_table()
        area["right"].split_column(Layout(name="table", ratio=1), Layout(name="summary", size=4))
        self._table.render(area["right"]["table"])
        if self._error:
            _error_box(self._error).render(area["right"]["summary"])
        else:
            InfoBox("Disk", f"{state.target_device}: {format_size(self._capacity)}, "
                            f"fixed partitions use {format_size(fixed_size(self._plan))}"
                    ).render(area["right"]["summary"])

    def _edit_size(self, index: int) -> Signal:
        spec = self._plan[index]
        current = "rest" if spec.size is None else f"{spec.size // MIB}MiB"
        field = TextField(f"Size of {spec.label} (e.g. 20GiB, 25%, rest)", current)

        def on_submit(button: str) -> Signal:
            if button != "OK":
                return Redraw()
            try:
                candidate = copy.deepcopy(self._plan)
                candidate[index].size = parse_size(field.value, self._capacity)
                self._commit(candidate)
            except ValueError as e:
                field.error = str(e)
                modal.open()
            return Redraw()

        modal = Modal(f"Resize {spec.label}", field=field, buttons=("OK", "Cancel"),
                      on_submit=on_submit)
        return self.open_modal(modal)

    def handle_event(self, state, event):
        if not isinstance(event, KeyEvent):
            return Noop()
        key = event.key
        if key == "esc":
            return Pop()
        if key in ("tab", "backtab"):
            self._schemes.focused = not self._schemes.focused
            self._table.focused = not self._table.focused
            return Redraw()
        if key == "c" or (key == "enter" and self._schemes.focused):
            problems = self.problems()
            if problems:
                self._error = problems[0]
                return Redraw()
            state.set_partitions(self._scheme, self._plan)
            return Push(FilesystemPage(state))
        if key == "a":
            self._error = ""
            return Push(NewPartitionPage(self, state))
        if self._schemes.focused:
            signal = self._schemes.handle_input(event)
            if isinstance(signal, Redraw):
                self._scheme = self._keys[self._schemes.cursor]
                self._plan = build_scheme(self._scheme, self._capacity, self._fs_type)
                self._error = ""
            return signal
        self._sync_table()
        if key == "enter" and self._table.current is not None:
            return self._edit_size(self._table.current)
        if key == "e" and self._table.current is not None:
            self._error = ""
            return Push(AlterPartitionPage(self, self._table.current))
        return self._table.handle_input(event)


# ---------------------------------------------------------------------------
# Manual partitioning
# ---------------------------------------------------------------------------


class NewPartitionPage(Page):
    """Add one partition: size, then filesystem, then mount point."""

    title = "New Partition"
    step = 2
    help_key = "new_partition"
    hints = ("Enter next", "Esc back")

    def __init__(self, editor: PartitionSchemePage, state: InstallerState):
        super().__init__()
        self._editor = editor
        self._sector_size = state.target_sector_size
        self._size_field = TextField("Size (e.g. 20GiB, 25% of free space, rest)")
        self._size_field.focused = True
        self._filesystems = SelectList("Filesystem",
                                       [(k, PARTITION_FILESYSTEMS[k]) for k in PARTITION_FILESYSTEMS])
        self._fs_keys = list(PARTITION_FILESYSTEMS)
        self._mount_field = TextField("Mount point (e.g. /home or /var)")
        self._mount_field.focused = True
        self._stage = "size"
        self.size: int | None = None
        self.fs_type = ""

    @property
    def stage(self) -> str:
        return self._stage

    @property
    def typing(self) -> bool:
        return self._stage in ("size", "mount")

    def render_body(self, state, area):
        area.split_column(Layout(name="info", size=6), Layout(name="input", ratio=1))
        lines = [
            f"Disk: {state.target_device} ({format_size(self._editor.capacity)})",
            f"Sector size: {self._sector_size} B",
            f"Free space: {format_size(self._editor.free_space)}",
        ]
        if self.fs_type:
            size = "rest of disk" if self.size is None else format_size(self.size)
            lines.append(f"New partition: {size}, {self.fs_type}")
        InfoBox("New partition", "\n".join(lines)).render(area["info"])
        widget = {"size": self._size_field, "filesystem": self._filesystems,
                  "mount": self._mount_field}[self._stage]
        if self._stage == "filesystem":
            widget.render(area["input"])
        else:
            area["input"].split_column(Layout(name="field", size=3), Layout(name="pad", ratio=1))
            widget.render(area["input"]["field"])

    def _accept_size(self) -> Signal:
        try:
            self.size = parse_size(self._size_field.value, self._editor.free_space)
        except ValueError as e:
            self._size_field.error = str(e)
            return Redraw()
        if self.size is not None and self.size > self._editor.free_space:
            self._size_field.error = f"Only {format_size(self._editor.free_space)} is free"
            return Redraw()
        self._stage = "filesystem"
        return Redraw()

    def _create(self, mountpoint: str) -> Signal:
        taken = {p.label for p in self._editor.plan}
        label = base = default_label(mountpoint, self.fs_type)
        number = 2
        while label in taken:
            label = f"{base[:LABEL_LIMITS[self.fs_type] - len(str(number))]}{number}"
            number += 1
        spec = PartitionSpec(label, mountpoint, self.fs_type, self.size)
        spec.refresh_flags()
        try:
            self._editor.add_partition(spec)
        except ValueError as e:
            if self._stage == "mount":
                self._mount_field.error = str(e)
            else:
                self._stage = "size"
                self._size_field.error = str(e)
            return Redraw()
        return Pop()

    def handle_event(self, state, event):
        if not isinstance(event, KeyEvent):
            return Noop()
        key = event.key
        if key == "esc":
            if self._stage == "size":
                return Pop()
            if self._stage == "filesystem":
                self._stage, self.fs_type = "size", ""
            else:
                self._stage = "filesystem"
            return Redraw()
        if self._stage == "size":
            if key == "enter":
                return self._accept_size()
            return self._size_field.handle_input(event)
        if self._stage == "filesystem":
            if key == "enter":
                self.fs_type = self._fs_keys[self._filesystems.cursor]
                if self.fs_type == "swap":
                    return self._create("")
                self._stage = "mount"
                return Redraw()
            return self._filesystems.handle_input(event)
        if key == "enter":
            mountpoint = self._mount_field.value.strip()
            try:
                check_mount_point(mountpoint, [p.mountpoint for p in self._editor.plan])
            except ValueError as e:
                self._mount_field.error = str(e)
                return Redraw()
            return self._create(mountpoint)
        return self._mount_field.handle_input(event)


class AlterPartitionPage(Page):
    """Change the mount point, label or filesystem of one partition, or delete it."""

    title = "Edit Partition"
    step = 2
    help_key = "alter_partition"
    hints = ("↑/↓ move", "Enter choose", "Esc back")

    ACTIONS = ("Set mount point", "Set label", "Change filesystem", "Delete partition")

    def __init__(self, editor: PartitionSchemePage, index: int):
        super().__init__()
        self._editor = editor
        self._index = index
        self._actions = SelectList("Actions", list(self.ACTIONS))
        self._error = ""

    @property
    def spec(self) -> PartitionSpec:
        return self._editor.plan[self._index]

    def render_body(self, state, area):
        spec = self.spec
        size = "rest of disk" if spec.size is None else format_size(spec.size)
        area.split_column(Layout(name="info", size=6), Layout(name="actions", ratio=1),
                          Layout(name="error", size=3))
        InfoBox(f"Partition {self._index + 1}",
                f"Label: {spec.label}\nMount point: {spec.mountpoint or '-'}\n"
                f"Filesystem: {spec.fs_type}   Size: {size}").render(area["info"])
        self._actions.render(area["actions"])
        if self._error:
            _error_box(self._error).render(area["error"])

    def _replace(self, **changes) -> None:
        spec = copy.deepcopy(self.spec)
        for name, value in changes.items():
            setattr(spec, name, value)
        spec.refresh_flags()
        self._editor.replace_partition(self._index, spec)

    def _text_modal(self, title: str, value: str, check) -> Modal:
        """Modal editing one text attribute; ``check`` validates and applies."""
        field = TextField(title, value)

        def on_submit(button: str) -> Signal:
            if button != "OK":
                return Redraw()
            try:
                check(field.value.strip())
            except ValueError as e:
                field.error = str(e)
                modal.open()
            return Redraw()

        modal = Modal(title, field=field, buttons=("OK", "Cancel"), on_submit=on_submit)
        return modal

    def _set_mount_point(self, value: str) -> None:
        taken = [p.mountpoint for i, p in enumerate(self._editor.plan) if i != self._index]
        check_mount_point(value, taken)
        self._replace(mountpoint=value)

    def _set_label(self, value: str) -> None:
        check_label(value, self.spec.fs_type)
        self._replace(label=value)

    def _set_filesystem(self, fs_type: str) -> None:
        try:
            if fs_type == "swap":
                self._replace(fs_type=fs_type, mountpoint="")
            else:
                self._replace(fs_type=fs_type)
            self._error = ""
        except ValueError as e:
            self._error = str(e)

    def _confirm_delete(self) -> Signal:
        def on_submit(button: str) -> Signal:
            if button != "Delete":
                return Redraw()
            self._editor.remove_partition(self._index)
            return Pop()

        modal = Modal("Delete partition",
                      f"Remove {self.spec.label} from the plan?",
                      buttons=("Delete", "Cancel"), on_submit=on_submit, style=theme.WARNING)
        modal.buttons.select("Cancel")
        return self.open_modal(modal)

    def handle_event(self, state, event):
        if not isinstance(event, KeyEvent):
            return Noop()
        if event.key == "esc":
            return Pop()
        if event.key != "enter":
            return self._actions.handle_input(event)
        self._error = ""
        action = self._actions.current_item[0]
        if action == "Set mount point":
            if self.spec.fs_type == "swap":
                self._error = "Swap partitions are not mounted"
                return Redraw()
            return self.open_modal(self._text_modal("Mount point", self.spec.mountpoint,
                                                    self._set_mount_point))
        if action == "Set label":
            return self.open_modal(self._text_modal("Partition label", self.spec.label,
                                                    self._set_label))
        if action == "Change filesystem":
            return self.open_modal(_choice_modal("Filesystem", PARTITION_FILESYSTEMS,
                                                 self.spec.fs_type, self._set_filesystem))
        return self._confirm_delete()


# ---------------------------------------------------------------------------
# Page 3: Filesystem
# ---------------------------------------------------------------------------


class FilesystemPage(Page):
    title = "Filesystem"
    step = 3
    help_key = "filesystem"
    hints = ("↑/↓ move", "Enter select", "Esc back")

    def __init__(self, state: InstallerState):
        super().__init__()
        self._keys = list(FILESYSTEMS)
        self._list = SelectList("Filesystem for / and /home",
                                [(k, FILESYSTEMS[k]) for k in self._keys])
        if state.root_filesystem in self._keys:
            self._list.cursor = self._keys.index(state.root_filesystem)

    def render_body(self, state, area):
        area.split_column(Layout(name="info", size=5), Layout(name="list", ratio=1))
        root = state.root_partition
        root_size = "-"
        if root is not None:
            root_size = format_size(root.size) if root.size is not None else format_size(state.free_space)
        InfoBox(
            state.target_device,
            f"{state.target_device_model}, {format_size(state.target_device_size)}\n"
            f"Free space after fixed partitions: {format_size(state.free_space)}\n"
            f"Root partition: {root_size}",
        ).render(area["info"])
        self._list.render(area["list"])

    def handle_event(self, state, event):
        if not isinstance(event, KeyEvent):
            return Noop()
        if event.key == "esc":
            return Pop()
        if event.key == "enter":
            state.set_root_filesystem(self._keys[self._list.cursor])
            return Push(SystemPage())
        return self._list.handle_input(event)


# ---------------------------------------------------------------------------
# Form pages: System, Locale
# ---------------------------------------------------------------------------


class FormPage(Page):
    """A list of settings, each edited in a modal."""

    help_key = "form"
    hints = ("↑/↓ move", "Enter change", "c continue", "Esc back")

    def __init__(self):
        super().__init__()
        self._rows = SelectList(self.title, headers=["Setting", "Value"])
        self._error = ""

    def fields(self, state: InstallerState) -> list[tuple[str, str, str]]:
        """``(key, label, shown value)`` for every row."""
        raise NotImplementedError

    def edit(self, state: InstallerState, key: str) -> Modal | Page | None:
        """Change the setting ``key``: in place, in a modal, or on a sub-page."""
        raise NotImplementedError

    def validate(self, state: InstallerState) -> str:
        return ""

    def next_page(self, state: InstallerState) -> Page:
        raise NotImplementedError

    def _sync_rows(self, state: InstallerState) -> None:
        self._rows.set_items([(label, value) for _, label, value in self.fields(state)])

    def render_body(self, state, area):
        self._sync_rows(state)
        if self._error:
            area.split_column(Layout(name="rows", ratio=1), Layout(name="error", size=3))
            self._rows.render(area["rows"])
            _error_box(self._error).render(area["error"])
        else:
            self._rows.render(area)

    def handle_event(self, state, event):
        if not isinstance(event, KeyEvent):
            return Noop()
        self._sync_rows(state)
        if event.key == "esc":
            return Pop()
        if event.key == "c":
            self._error = self.validate(state)
            if self._error:
                return Redraw()
            return Push(self.next_page(state))
        if event.key == "enter":
            key = self.fields(state)[self._rows.cursor][0]
            editor = self.edit(state, key)
            if editor is None:
                return Redraw()
            if isinstance(editor, Page):
                return Push(editor)
            return self.open_modal(editor)
        return self._rows.handle_input(event)


class SystemPage(FormPage):
    title = "System"
    step = 4

    def fields(self, state):
        return [
            ("bootloader", "Bootloader", BOOTLOADERS.get(state.bootloader, "-")),
            ("desktop", "Desktop environment", DESKTOPS.get(state.desktop, state.desktop)),
            ("audio", "Audio", AUDIO_BACKENDS.get(state.audio, state.audio)),
            ("network", "Network", NETWORK_BACKENDS.get(state.network, state.network)),
            ("flakes", "Enable flakes", "yes" if state.enable_flakes else "no"),
            ("kernel", "Kernel", KERNELS.get(state.kernel, state.kernel)),
            ("ssh", "SSH server", _ssh_summary(state)),
        ]

    def edit(self, state, key):
        if key == "flakes":
            state.enable_flakes = not state.enable_flakes
            return None
        if key == "ssh":
            return SshPage()
        options = {
            "bootloader": ("Bootloader", BOOTLOADERS),
            "kernel": ("Kernel", KERNELS),
            "desktop": ("Desktop environment", DESKTOPS),
            "audio": ("Audio", AUDIO_BACKENDS),
            "network": ("Network", NETWORK_BACKENDS),
        }
        title, choices = options[key]
        return _choice_modal(title, choices, getattr(state, key),
                             partial(setattr, state, key))

    def validate(self, state):
        return "" if state.bootloader else "Choose a bootloader"

    def next_page(self, state):
        return UsersPage()


def _ssh_summary(state: InstallerState) -> str:
    if not state.ssh_enabled:
        return "disabled"
    auth = "password and key" if state.ssh_password_auth else "key only"
    return f"port {state.ssh_port}, {auth}"


class SshPage(FormPage):
    """OpenSSH settings, reached from the System page."""

    title = "SSH Server"
    step = 4
    hints = ("↑/↓ move", "Enter change", "c/Esc done")

    def fields(self, state):
        def yes_no(value: bool) -> str:
            return "yes" if value else "no"

        return [
            ("ssh_enabled", "Enable OpenSSH", yes_no(state.ssh_enabled)),
            ("ssh_port", "Port", str(state.ssh_port)),
            ("ssh_password_auth", "Password authentication", yes_no(state.ssh_password_auth)),
            ("ssh_root_login", "Root login", yes_no(state.ssh_root_login)),
        ]

    def edit(self, state, key):
        if key != "ssh_port":
            setattr(state, key, not getattr(state, key))
            return None
        field = TextField("Port (1-65535)", str(state.ssh_port))

        def on_submit(button: str) -> Signal:
            if button != "OK":
                return Redraw()
            value = field.value.strip()
            if not value.isdigit() or not 1 <= int(value) <= 65535:
                field.error = "Enter a port between 1 and 65535"
                modal.open()
                return Redraw()
            state.ssh_port = int(value)
            return Redraw()

        modal = Modal("SSH port", field=field, buttons=("OK", "Cancel"), on_submit=on_submit)
        return modal

    def handle_event(self, state, event):
        if isinstance(event, KeyEvent) and event.key == "c":
            return Pop()
        return super().handle_event(state, event)


class LocalePage(FormPage):
    title = "Locale & Hostname"
    step = 6

    def fields(self, state):
        return [
            ("hostname", "Hostname", state.hostname or "-"),
            ("locale", "Locale", state.locale),
            ("timezone", "Time zone", state.timezone),
            ("keyboard_layout", "Keyboard layout", state.keyboard_layout),
        ]

    def edit(self, state, key):
        if key == "hostname":
            field = TextField("Hostname", state.hostname)

            def on_submit(button: str) -> Signal:
                if button != "OK":
                    return Redraw()
                value = field.value.strip()
                if not HOSTNAME_RE.match(value):
                    field.error = "Letters, digits and '-', at most 63 characters"
                    modal.open()
                    return Redraw()
                state.hostname = value
                return Redraw()

            modal = Modal("Hostname", field=field, buttons=("OK", "Cancel"), on_submit=on_submit)
            return modal
        options = {
            "locale": ("Locale", LOCALES),
            "timezone": ("Time zone", TIMEZONES),
            "keyboard_layout": ("Keyboard layout", list(KEYBOARD_LAYOUTS)),
        }
        title, choices = options[key]
        return _choice_modal(title, choices, getattr(state, key),
                             partial(setattr, state, key))

    def validate(self, state):
        if not HOSTNAME_RE.match(state.hostname):
            return f"Invalid hostname: {state.hostname or '(empty)'}"
        if not state.timezone:
            return "Choose a time zone"
        return ""

    def next_page(self, state):
        return PackagesPage(state)


# ---------------------------------------------------------------------------
# Page 5: Users
# ---------------------------------------------------------------------------


class UsersPage(Page):
    title = "Users"
    step = 5
    help_key = "users"
    hints = ("↑/↓ move", "Enter add/edit", "d delete", "c continue", "Esc back")

    ADD = "+ Add user"

    def __init__(self):
        super().__init__()
        self._list = SelectList("Accounts", headers=["Account", "Details"])
        self._error = ""

    def _rows(self, state: InstallerState) -> list[tuple[str, str]]:
        rows = [(self.ADD, ""), ("root", "password set" if state.root_password_hash
                                 else "no password (login via sudo)")]
        for user in state.users:
            rows.append((user.username, "administrator" if user.admin else "user"))
        return rows

    def render_body(self, state, area):
        self._list.set_items(self._rows(state))
        area.split_column(Layout(name="list", ratio=1), Layout(name="info", size=3))
        self._list.render(area["list"])
        if self._error:
            _error_box(self._error).render(area["info"])
        else:
            InfoBox("", "Administrators may use sudo. Set a root password or create "
                        "at least one administrator.", style=theme.DIM).render(area["info"])

    def handle_event(self, state, event):
        if not isinstance(event, KeyEvent):
            return Noop()
        key = event.key
        self._list.set_items(self._rows(state))
        if key == "esc":
            return Pop()
        if key == "c":
            if not state.users:
                self._error = "Add at least one user account"
                return Redraw()
            if not state.has_root_access():
                self._error = "Set a root password or make a user an administrator"
                return Redraw()
            return Push(LocalePage())
        cursor = self._list.cursor
        if key == "enter":
            self._error = ""
            if cursor == 0:
                return Push(UserEditPage())
            if cursor == 1:
                return Push(UserEditPage(root=True))
            return Push(UserEditPage(state.users[cursor - 2]))
        if key == "d" and cursor >= 2:
            state.remove_user(state.users[cursor - 2].username)
            self._list.set_items(self._rows(state))
            return Redraw()
        return self._list.handle_input(event)


class UserEditPage(Page):
    """Create or edit one account, or set the root password."""

    title = "User Account"
    step = 5
    help_key = "user_edit"
    hints = ("Tab next field", "Space toggle admin", "Enter save", "Esc cancel")

    def __init__(self, user: UserAccount | None = None, *, root: bool = False):
        super().__init__()
        self._original = user
        self._root = root
        self._username = TextField("Username", user.username if user else "",
                                   placeholder="lowercase letters, digits, - and _")
        self._password = TextField("Password", secret=True,
                                   placeholder="leave empty to keep" if user else "")
        self._confirm = TextField("Confirm password", secret=True)
        self._admin = user.admin if user else not root
        self._buttons = ButtonRow(["Save", "Cancel"])
        if root:
            self.title = "Root Password"
            self._focusables = [self._password, self._confirm, self._buttons]
        else:
            self._focusables = [self._username, self._password, self._confirm, "admin", self._buttons]
        self._focus = 0
        self._error = ""
        self._apply_focus()

    def _apply_focus(self) -> None:
        current = self._focusables[self._focus]
        for item in self._focusables:
            if isinstance(item, (TextField, ButtonRow)):
                item.focused = item is current

    @property
    def typing(self) -> bool:
        return isinstance(self._focusables[self._focus], TextField)

    def render_body(self, state, area):
        rows = []
        if not self._root:
            rows.append(Layout(self._username, name="username", size=3))
        rows.append(Layout(self._password, name="password", size=3))
        rows.append(Layout(self._confirm, name="confirm", size=3))
        if not self._root:
            focused = self._focusables[self._focus] == "admin"
            mark = "[x]" if self._admin else "[ ]"
            rows.append(Layout(Text(f" {mark} Administrator (member of wheel)",
                                    style=theme.SELECTED if focused else ""), name="admin", size=1))
        rows.append(Layout(self._buttons, name="buttons", size=3))
        rows.append(Layout(_error_box(self._error) if self._error else Text(""), name="error", size=3))
        area.split_column(*rows)

    def _save(self, state: InstallerState) -> Signal:
        password = self._password.value
        if password != self._confirm.value:
            self._error = "Passwords do not match"
            return Redraw()
        keep_hash = self._original is not None and not password
        if not password and not keep_hash:
            self._error = "Password cannot be empty"
            return Redraw()

        if not self._root:
            username = self._username.value.strip()
            if not USERNAME_RE.match(username) or username in RESERVED_USERNAMES:
                self._error = f"Invalid username: {username or '(empty)'}"
                return Redraw()
            original = self._original.username if self._original else None
            if username != original and state.find_user(username) is not None:
                self._error = f"User '{username}' already exists"
                return Redraw()

        try:
            password_hash = self._original.password_hash if keep_hash else hash_password(password)
        except InstallError as e:
            self._error = str(e)
            return Redraw()

        if self._root:
            state.root_password_hash = password_hash
        else:
            user = UserAccount(username, password_hash, admin=self._admin,
                               groups=self._original.groups if self._original else [])
            if self._original is None:
                state.add_user(user)
            else:
                state.replace_user(self._original.username, user)
            logger.info("Saved user %s (admin=%s)", username, self._admin)
        return Pop()

    def handle_event(self, state, event):
        if not isinstance(event, KeyEvent):
            return Noop()
        key = event.key
        current = self._focusables[self._focus]
        if key == "esc":
            return Pop()
        if key in ("tab", "backtab") or (key in ("up", "down") and not isinstance(current, ButtonRow)):
            step = 1 if key in ("tab", "down") else -1
            self._focus = (self._focus + step) % len(self._focusables)
            self._apply_focus()
            return Redraw()
        if key == "enter":
            if isinstance(current, ButtonRow) and current.selected == "Cancel":
                return Pop()
            return self._save(state)
        if current == "admin":
            if key == " ":
                self._admin = not self._admin
                return Redraw()
            return Noop()
        if isinstance(current, ButtonRow) and key in ("up", "down"):
            self._focus = (self._focus + (1 if key == "down" else -1)) % len(self._focusables)
            self._apply_focus()
            return Redraw()
        signal = current.handle_input(event)
        if isinstance(signal, Redraw):
            self._error = ""
        return signal


# ---------------------------------------------------------------------------
# Page 7: Packages
# ---------------------------------------------------------------------------


class PackagesPage(Page):
    title = "Packages"
    step = 7
    help_key = "packages"
    hints = ("/ search", "Space toggle", "c continue", "Esc back")

    def __init__(self, state: InstallerState):
        super().__init__()
        self._search = TextField("Search", placeholder="press / to filter or add a package")
        self._list = SelectList("Packages", headers=["Package", "Description"], multi=True)
        self._names: list[str] = []
        self._custom = [p for p in state.packages if p not in PACKAGE_CATALOGUE]
        self._message = ""

    @property
    def typing(self) -> bool:
        return self._search.focused

    def _filtered(self) -> list[str]:
        names = sorted(PACKAGE_CATALOGUE) + self._custom
        query = self._search.value.strip().lower()
        if query:
            names = [n for n in names if query in n.lower()
                     or query in PACKAGE_CATALOGUE.get(n, "").lower()]
        return names

    def _sync(self, state: InstallerState) -> None:
        self._names = self._filtered()
        self._list.set_items([(n, PACKAGE_CATALOGUE.get(n, "custom package")) for n in self._names])
        self._list.checked = {i for i, n in enumerate(self._names) if n in state.packages}

    def render_body(self, state, area):
        self._sync(state)
        area.split_column(Layout(name="search", size=3), Layout(name="list", ratio=1),
                          Layout(name="summary", size=3))
        self._search.render(area["search"])
        self._list.render(area["list"])
        summary = self._message or (f"{len(state.packages)} selected: "
                                    + (", ".join(state.packages) or "none"))
        InfoBox("", summary, style=theme.DIM).render(area["summary"])

    def _add_custom(self, state: InstallerState) -> Signal:
        name = self._search.value.strip()
        if not name:
            self._search.focused = False
            return Redraw()
        if name in PACKAGE_CATALOGUE or name in self._custom:
            if name not in state.packages:
                state.toggle_package(name)
        elif PACKAGE_NAME_RE.match(name):
            self._custom.append(name)
            state.toggle_package(name)
            self._message = f"Added custom package '{name}'"
        else:
            self._search.error = "Not a valid package attribute name"
            return Redraw()
        self._search.clear()
        self._search.focused = False
        return Redraw()

    def handle_event(self, state, event):
        if not isinstance(event, KeyEvent):
            return Noop()
        key = event.key
        self._sync(state)
        if self._search.focused:
            if key == "enter":
                return self._add_custom(state)
            if key in ("esc", "tab", "down"):
                self._search.focused = False
                self._list.focused = True
                return Redraw()
            self._message = ""
            return self._search.handle_input(event)
        if key == "esc":
            return Pop()
        if key in ("/", "tab"):
            self._search.focused = True
            self._list.focused = False
            return Redraw()
        if key == "c":
            return Push(ReviewPage(state))
        if key in (" ", "enter") and self._list.current is not None:
            state.toggle_package(self._names[self._list.current])
            self._message = ""
            return Redraw()
        return self._list.handle_input(event)


# ---------------------------------------------------------------------------
# Page 8: Review
# ---------------------------------------------------------------------------


class ReviewPage(Page):
    """Read-only summary and configuration preview before installing."""

    title = "Review"
    step = 8
    help_key = "review"
    hints = ("1/2 preview", "PgUp/PgDn scroll", "←/→ choose", "Enter confirm", "Esc back")

    def __init__(self, state: InstallerState):
        super().__init__()
        self._buttons = ButtonRow(["Begin Installation", "Back", "Start Over"], focused=True)
        self._preview = LogView("configuration.nix")
        self._configs = None
        try:
            self._configs = write_configs(state)
        except (OSError, ValueError, TypeError) as e:
            logger.exception("Could not generate configuration preview")
            self._preview.set_lines([f"Could not generate configuration: {e}"])
        self._show("system")

    def _show(self, view: str) -> None:
        if self._configs is None:
            return
        if view == "system":
            self._preview.title = "configuration.nix [1]  ·  disk layout [2]"
            self._preview.set_lines(self._configs.system.splitlines())
        else:
            self._preview.title = "disk layout [2]  ·  configuration.nix [1]"
            self._preview.set_lines(self._configs.disko.splitlines())
        self._preview.scroll = len(self._preview.lines)

    def _summary(self, state: InstallerState) -> Table:
        table = Table.grid(padding=(0, 2))
        table.add_column(style=theme.DIM, no_wrap=True)
        table.add_column()
        table.add_row("Target", f"{state.target_device} ({state.target_device_model}, "
                                f"{format_size(state.target_device_size)})")
        for spec in state.partitions:
            size = "rest of disk" if spec.size is None else format_size(spec.size)
            table.add_row("", f"{spec.label}: {spec.mountpoint or 'swap'} {spec.fs_type} {size}")
        table.add_row("Bootloader", BOOTLOADERS.get(state.bootloader, state.bootloader))
        table.add_row("Kernel", KERNELS.get(state.kernel, state.kernel))
        table.add_row("Hostname", state.hostname)
        table.add_row("Locale", f"{state.locale}, {state.keyboard_layout} keyboard")
        table.add_row("Time zone", state.timezone)
        users = ", ".join(f"{u.username}{' (admin)' if u.admin else ''}" for u in state.users)
        table.add_row("Users", users or "-")
        table.add_row("Root password", "set" if state.root_password_hash else "not set")
        table.add_row("Desktop", DESKTOPS.get(state.desktop, state.desktop))
        table.add_row("SSH", _ssh_summary(state))
        table.add_row("Packages", ", ".join(state.packages) or "-")
        return table

    def render_body(self, state, area):
        area.split_column(
            Layout(name="main", ratio=1),
            Layout(name="warning", size=3),
            Layout(name="buttons", size=1),
        )
        area["main"].split_row(Layout(name="summary", ratio=1), Layout(name="preview", ratio=1))
        area["main"]["summary"].update(Panel(self._summary(state), title="Summary",
                                             title_align="left", border_style=theme.BORDER_STYLE))
        self._preview.render(area["main"]["preview"])
        InfoBox("", IRREVERSIBLE_WARNING.format(device=state.target_device or "the target disk"),
                style=theme.WARNING, border_style=theme.WARNING).render(area["warning"])
        self._buttons.render(area["buttons"])

    def _begin(self, state: InstallerState) -> Signal:
        try:
            preflight(state, lookup=find_disk)
        except PreflightError as e:
            return Error(str(e), recoverable=True)
        return Push(InstallPage(state))

    def _confirm(self, state: InstallerState) -> Signal:
        def on_submit(button: str) -> Signal:
            if button == "Erase and install":
                return self._begin(state)
            return Redraw()

        return self.open_modal(Modal(
            "Confirm installation",
            IRREVERSIBLE_WARNING.format(device=state.target_device),
            buttons=("Cancel", "Erase and install"),
            on_submit=on_submit,
            style=theme.WARNING,
        ))

    def handle_event(self, state, event):
        if not isinstance(event, KeyEvent):
            return Noop()
        key = event.key
        if key == "esc":
            return Pop()
        if key == "1":
            self._show("system")
            return Redraw()
        if key == "2":
            self._show("disko")
            return Redraw()
        if key in ("up", "down", "pageup", "pagedown", "home", "end"):
            return self._preview.handle_input(event)
        if key == "enter":
            if self._buttons.selected == "Back":
                return Pop()
            if self._buttons.selected == "Start Over":
                return Unwind()
            return self._confirm(state)
        return self._buttons.handle_input(event)


# ---------------------------------------------------------------------------
# Page 9: Install
# ---------------------------------------------------------------------------


class InstallPage(Page):
    """Installation progress; drives the worker and renders its updates."""

    title = "Installing"
    step = 9
    help_key = "install"
    hints = ("PgUp/PgDn scroll log",)

    def __init__(self, state: InstallerState, orchestrator: Orchestrator | None = None):
        super().__init__()
        self._orchestrator = orchestrator or Orchestrator(
            state, lookup=find_disk, mountpoint=state.mountpoint
        )
        self._names = [step.name for step in self._orchestrator.steps]
        self._statuses = [StepStatus.PENDING.value] * len(self._names)
        self._step_logs: list[list[str]] = [[] for _ in self._names]
        self._channel = UpdateChannel()
        self._worker: InstallWorker | None = None
        self._log = LogView("Output")
        self._progress = ProgressBar("Progress", total=len(self._names))
        self.result: Finished | None = None
        self._reported = False
        self._recoverable = False

    @property
    def busy(self) -> bool:
        return self._worker is not None and self.result is None

    @property
    def statuses(self) -> list[str]:
        return list(self._statuses)

    @property
    def log_lines(self) -> list[str]:
        return list(self._log.lines)

    def start(self, state: InstallerState) -> None:
        runner_factory = partial(CommandRunner, log_path=state.install_log, dry_run=state.dry_run)
        self._worker = InstallWorker(self._orchestrator, runner_factory)
        self._channel.connect(self._worker)
        logger.info("Starting installation worker")
        self._worker.start()

    def apply_updates(self) -> bool:
        """Drain the channel into the page; True when anything changed."""
        updates = self._channel.drain()
        for update in updates:
            if isinstance(update, StepUpdate):
                self._statuses[update.index] = update.status
                if update.status == StepStatus.RUNNING.value:
                    self._log.append(f"==> {self._names[update.index]}")
            elif isinstance(update, LogUpdate):
                if update.index >= 0:
                    self._step_logs[update.index].append(update.line)
                self._log.append(update.line)
            elif isinstance(update, Finished):
                self.result = update
                self._worker.wait()
        done = self._statuses.count(StepStatus.SUCCEEDED.value)
        running = next((n for n, s in zip(self._names, self._statuses)
                        if s == StepStatus.RUNNING.value), "")
        self._progress.update(done, running)
        return bool(updates)

    def render_body(self, state, area):
        table = Table(box=None, show_header=False, expand=True, pad_edge=False)
        table.add_column(width=2)
        table.add_column(ratio=1)
        table.add_column(justify="right")
        for name, status in zip(self._names, self._statuses):
            marker, color = theme.STEP_MARKERS[status]
            table.add_row(Text(marker, style=color), name, Text(status, style=color))
        area.split_column(
            Layout(Panel(table, title="Steps", title_align="left", border_style=theme.BORDER_STYLE),
                   name="steps", size=len(self._names) + 2),
            Layout(name="progress", size=4),
            Layout(name="log", ratio=1),
        )
        self._progress.render(area["progress"])
        self._log.render(area["log"])

    def _failure_signal(self) -> Error:
        index = next((i for i, s in enumerate(self._statuses)
                      if s == StepStatus.FAILED.value), None)
        if index is None:
            message = f"Installation did not start.\n\n{self.result.error}"
            log = "\n".join(self._log.lines)
        else:
            message = (f"Installation failed at step '{self._names[index]}'.\n\n"
                       f"{self.result.error}\n\n{PARTIAL_STATE_NOTICE}")
            log = "\n".join(self._step_logs[index])
        self._recoverable = index is None and self.result.recoverable
        return Error(message, log=log, recoverable=self._recoverable)

    def handle_event(self, state, event):
        if self._worker is None:
            self.start(state)
        changed = self.apply_updates()
        if self.result is not None and not self._reported:
            self._reported = True
            if self.result.success:
                return Push(FinishPage())
            return self._failure_signal()
        if self._recoverable:
            # Back from the error page: nothing was installed, return to the review
            return Pop()
        if isinstance(event, KeyEvent):
            signal = self._log.handle_input(event)
            if isinstance(signal, Redraw):
                return signal
        return Redraw() if changed else Noop()


# ---------------------------------------------------------------------------
# Page 10: Finish
# ---------------------------------------------------------------------------


class FinishPage(Page):
    title = "Complete"
    step = 9
    hints = ("←/→ choose", "Enter confirm")

    def __init__(self):
        super().__init__()
        self._buttons = ButtonRow(["Reboot", "Quit"], focused=True)

    def render_body(self, state, area):
        area.split_column(Layout(name="info", ratio=1), Layout(name="buttons", size=3))
        InfoBox(
            "✓ Installation Complete!",
            "NixOS is installed.\nRemove the installation media and reboot.\n\n"
            "Further changes can be made in /etc/nixos/configuration.nix "
            "followed by nixos-rebuild switch.",
            style=theme.SUCCESS,
        ).render(area["info"])
        self._buttons.render(area["buttons"])

    def handle_event(self, state, event):
        if not isinstance(event, KeyEvent):
            return Noop()
        if event.key in ("q", "esc"):
            return Quit()
        if event.key == "enter":
            if self._buttons.selected == "Reboot" and not state.dry_run:
                subprocess.run(["systemctl", "reboot"], check=False)
            return Quit()
        return self._buttons.handle_input(event)


# ---------------------------------------------------------------------------
# Fatal error display
# ---------------------------------------------------------------------------


class FatalErrorPage(Page):
    """Shown for every Error signal.

    Recoverable errors may go back with Esc; all others only quit.
    """

    title = "Error"
    help_key = "error"

    def __init__(self, message: str, log: str = "", recoverable: bool = False):
        super().__init__()
        self.message = message
        self.recoverable = recoverable
        self._log = LogView("Captured log", log.splitlines())
        self.hints = ("q quit", "Esc back") if recoverable else ("q quit",)

    def render_body(self, state, area):
        height = min(self.message.count("\n") + 4, 14)
        header = "Cannot continue" if self.recoverable else "Installation Failed"
        area.split_column(Layout(name="message", size=height), Layout(name="log", ratio=1))
        InfoBox(f"✗ {header}", Text(self.message, style=theme.ERROR),
                border_style=theme.ERROR).render(area["message"])
        if self._log.lines:
            self._log.render(area["log"])

    def handle_event(self, state, event):
        if not isinstance(event, KeyEvent):
            return Noop()
        if event.key in ("q", "ctrl+c"):
            return Quit(exit_code=0 if self.recoverable else 1)
        if event.key == "esc":
            return Pop() if self.recoverable else Noop()
        return self._log.handle_input(event)
