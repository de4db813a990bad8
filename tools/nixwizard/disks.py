"""Block device discovery and partition plans."""

import json
import logging
import math
import os
import re
import subprocess
from dataclasses import dataclass, field

from .resources import (
    BOOT_PARTITION_SIZE,
    GIB,
    MAX_SWAP_SIZE,
    MIB,
    MIN_ESP_SIZE,
    MIN_REST_SIZE,
    PARTITION_SCHEMES,
)

logger = logging.getLogger(__name__)

LSBLK_COLUMNS = "NAME,PATH,SIZE,MODEL,TYPE,TRAN,RO,RM,PHY-SEC,FSTYPE,LABEL,MOUNTPOINT"

GPT_CODES = {
    "fat32": "EF00",
    "ext4": "8300",
    "btrfs": "8300",
    "xfs": "8300",
    "swap": "8200",
}

DISKO_FORMATS = {
    "fat32": "vfat",
    "ext4": "ext4",
    "btrfs": "btrfs",
    "xfs": "xfs",
    "swap": "swap",
}

# Longest label each mkfs accepts; GPT partition names stop at 36
LABEL_LIMITS = {
    "fat32": 11,
    "ext4": 16,
    "btrfs": 36,
    "xfs": 12,
    "swap": 15,
}

_SIZE_UNITS = [
    ("tib", 1 << 40),
    ("gib", 1 << 30),
    ("mib", 1 << 20),
    ("kib", 1 << 10),
    ("tb", 10 ** 12),
    ("gb", 10 ** 9),
    ("mb", 10 ** 6),
    ("kb", 10 ** 3),
    ("t", 1 << 40),
    ("g", 1 << 30),
    ("m", 1 << 20),
    ("k", 1 << 10),
    ("b", 1),
]


@dataclass
class ExistingPartition:
    name: str
    size: int
    fs_type: str = ""
    label: str = ""
    mountpoint: str = ""


@dataclass
class Disk:
    name: str
    path: str
    size: int
    model: str = "Unknown drive"
    transport: str = ""
    sector_size: int = 512
    read_only: bool = False
    removable: bool = False
    partitions: list[ExistingPartition] = field(default_factory=list)

    @property
    def size_display(self) -> str:
        return format_size(self.size)

    @property
    def mounted(self) -> list[str]:
        return [p.mountpoint for p in self.partitions if p.mountpoint]


@dataclass
class PartitionSpec:
    """One planned partition. ``size`` None means the rest of the disk."""

    label: str
    mountpoint: str
    fs_type: str
    size: int | None = None
    flags: list[str] = field(default_factory=list)

    @property
    def is_esp(self) -> bool:
        return "esp" in self.flags

    @property
    def gpt_code(self) -> str:
        if self.fs_type == "fat32" and not self.is_esp:
            return "0700"
        return GPT_CODES[self.fs_type]

    @property
    def disko_format(self) -> str:
        return DISKO_FORMATS[self.fs_type]

    def refresh_flags(self) -> None:
        """A FAT32 partition mounted at /boot is the EFI system partition."""
        if self.mountpoint == "/boot" and self.fs_type == "fat32":
            self.flags = ["esp", "boot"]
        else:
            self.flags = [f for f in self.flags if f not in ("esp", "boot")]


# ---------------------------------------------------------------------------
# Sizes
# ---------------------------------------------------------------------------


def format_size(size: int) -> str:
    """Human readable size in binary units."""
    for unit, factor in (("TiB", 1 << 40), ("GiB", 1 << 30), ("MiB", 1 << 20), ("KiB", 1 << 10)):
        if size >= factor:
            return f"{size / factor:.1f} {unit}"
    return f"{size} B"


def disko_size(size: int) -> str:
    """Size string for disko, e.g. ``500M``.

    Whole MiB keep the layout identical to the offsets ``layout_plan`` gives
    parted.
    """
    return f"{size // MIB}M"


def parse_size(text: str, capacity: int) -> int | None:
    """Parse a user supplied size.

    Accepts binary and decimal unit suffixes, a percentage of ``capacity``,
    a bare byte count, and ``rest`` (returned as None). Raises ValueError on
    anything else, including sizes below 1 MiB.
    """
    value = text.strip().lower().replace(" ", "")
    if not value:
        raise ValueError("Size is empty")
    if value in ("rest", "remaining", "*"):
        return None
    if value.endswith("%"):
        percent = float(value[:-1])
        if not 0 < percent <= 100:
            raise ValueError("Percentage must be between 0 and 100")
        size = int(capacity * percent / 100)
    else:
        for suffix, factor in _SIZE_UNITS:
            if value.endswith(suffix):
                number = float(value[: -len(suffix)])
                break
        else:
            number, factor = float(value), 1
        if number <= 0:
            raise ValueError("Size must be positive")
        size = number * factor
        if not math.isfinite(size):
            raise ValueError("Size must be a finite number")
        size = int(size)
    if size < MIB:
        raise ValueError("Size must be at least 1 MiB")
    return size


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


def _flag(value) -> bool:
    # lsblk prints booleans or "0"/"1" depending on its version
    if isinstance(value, str):
        return value not in ("0", "", "false")
    return bool(value)


def parse_lsblk(data: dict) -> list[Disk]:
    """Turn ``lsblk --json --bytes`` output into disks."""
    disks: list[Disk] = []
    for dev in data.get("blockdevices", []):
        if dev.get("type") != "disk":
            continue
        if _flag(dev.get("ro", False)):
            continue
        name = dev.get("name", "")
        partitions = [
            ExistingPartition(
                name=child.get("name", ""),
                size=int(child.get("size") or 0),
                fs_type=child.get("fstype") or "",
                label=child.get("label") or "",
                mountpoint=child.get("mountpoint") or "",
            )
            for child in dev.get("children", []) or []
        ]
        disks.append(Disk(
            name=name,
            path=dev.get("path") or f"/dev/{name}",
            size=int(dev.get("size") or 0),
            model=(dev.get("model") or "").strip() or "Unknown drive",
            transport=(dev.get("tran") or "").upper(),
            sector_size=int(dev.get("phy-sec") or 512),
            removable=_flag(dev.get("rm", False)),
            partitions=partitions,
        ))
    return disks


def scan_disks() -> list[Disk]:
    """Scan available block devices for installation targets."""
    try:
        result = subprocess.run(
            ["lsblk", "--json", "--bytes", "--output", LSBLK_COLUMNS],
            capture_output=True,
            text=True,
            check=True,
        )
        disks = parse_lsblk(json.loads(result.stdout))
    except (OSError, subprocess.CalledProcessError, json.JSONDecodeError) as e:
        logger.error("Disk scan failed: %s", e)
        raise
    logger.info("Found %d disk(s): %s", len(disks), ", ".join(d.path for d in disks))
    return disks


def find_disk(path: str) -> Disk | None:
    """Look up a single device again; None when it is gone."""
    for disk in scan_disks():
        if disk.path == path:
            return disk
    return None


def memory_size() -> int:
    try:
        return os.sysconf("SC_PAGE_SIZE") * os.sysconf("SC_PHYS_PAGES")
    except (ValueError, OSError):
        return 4 * GIB


# ---------------------------------------------------------------------------
# Plans
# ---------------------------------------------------------------------------


def boot_partition() -> PartitionSpec:
    return PartitionSpec("BOOT", "/boot", "fat32", BOOT_PARTITION_SIZE, ["esp", "boot"])


def build_scheme(name: str, capacity: int, fs_type: str = "ext4",
                 memory: int | None = None) -> list[PartitionSpec]:
    """Build one of the preset partition plans for a disk of ``capacity`` bytes."""
    if name not in PARTITION_SCHEMES:
        raise ValueError(f"Unknown partition scheme: {name}")
    plan = [boot_partition()]
    if name == "swap":
        memory = memory_size() if memory is None else memory
        swap = min(MAX_SWAP_SIZE, max(GIB, memory))
        swap -= swap % MIB
        plan.append(PartitionSpec("SWAP", "", "swap", swap))
        plan.append(PartitionSpec("ROOT", "/", fs_type))
    elif name == "home":
        root = int(capacity * 0.4)
        root -= root % MIB
        plan.append(PartitionSpec("ROOT", "/", fs_type, root))
        plan.append(PartitionSpec("HOME", "/home", fs_type))
    else:
        plan.append(PartitionSpec("ROOT", "/", fs_type))
    return plan


def fixed_size(plan: list[PartitionSpec]) -> int:
    return sum(p.size for p in plan if p.size is not None)


def plan_fits(plan: list[PartitionSpec], capacity: int) -> bool:
    """Whether the plan fits on a disk, leaving room for alignment."""
    needed = MIB + fixed_size(plan) + MIB  # leading alignment + GPT backup
    if any(p.size is None for p in plan):
        needed += MIN_REST_SIZE
    return needed <= capacity


def check_label(label: str, fs_type: str) -> None:
    """Raise ValueError when ``label`` cannot name a partition of ``fs_type``."""
    if not label:
        raise ValueError("Label cannot be empty")
    if " " in label:
        raise ValueError("Label cannot contain spaces")
    if not label.isascii() or not label.isprintable():
        raise ValueError("Label must be printable ASCII")
    limit = LABEL_LIMITS.get(fs_type, 36)
    if len(label) > limit:
        raise ValueError(f"{fs_type} labels are at most {limit} characters")


def check_mount_point(mountpoint: str, taken: list[str]) -> None:
    if not mountpoint:
        raise ValueError("Mount point cannot be empty")
    if not mountpoint.startswith("/"):
        raise ValueError("Mount point must be an absolute path")
    if mountpoint != "/" and mountpoint.endswith("/"):
        raise ValueError("Mount point cannot end with '/'")
    if " " in mountpoint or "//" in mountpoint:
        raise ValueError("Mount point cannot contain spaces or empty components")
    if mountpoint in taken:
        raise ValueError(f"Mount point {mountpoint} is already taken")


def default_label(mountpoint: str, fs_type: str) -> str:
    """Label for a new partition, e.g. ROOT for / and VAR for /var."""
    if fs_type == "swap":
        label = "SWAP"
    elif mountpoint == "/":
        label = "ROOT"
    else:
        label = mountpoint.strip("/").replace("/", "-").upper() or "DATA"
    return label[: LABEL_LIMITS.get(fs_type, 36)]


def plan_problems(plan: list[PartitionSpec], complete: bool = True) -> list[str]:
    """Everything wrong with a plan except whether it fits the disk.

    With ``complete`` False, partitions still waiting for a mount point are
    not reported.
    """
    problems = []
    rest = [i for i, p in enumerate(plan) if p.size is None]
    if len(rest) > 1:
        problems.append("Only one partition may use the remaining space")
    elif rest and rest[0] != len(plan) - 1:
        problems.append("The partition using the remaining space must be last")
    labels: set[str] = set()
    mounts: set[str] = set()
    for spec in plan:
        if spec.size is not None and spec.size < MIB:
            problems.append(f"Partition {spec.label} is smaller than 1 MiB")
        elif spec.is_esp and spec.size is not None and spec.size < MIN_ESP_SIZE:
            problems.append(f"EFI system partition {spec.label} is smaller than "
                            f"{format_size(MIN_ESP_SIZE)}")
        try:
            check_label(spec.label, spec.fs_type)
        except ValueError as e:
            problems.append(f"Partition {spec.label or '(unnamed)'}: {e}")
        if spec.label in labels:
            problems.append(f"Label {spec.label} is used twice")
        labels.add(spec.label)
        if spec.fs_type == "swap":
            continue
        if not spec.mountpoint:
            if complete:
                problems.append(f"Partition {spec.label} has no mount point")
        elif spec.mountpoint in mounts:
            problems.append(f"Mount point {spec.mountpoint} is used twice")
        else:
            mounts.add(spec.mountpoint)
    return problems


def layout_plan(plan: list[PartitionSpec], capacity: int) -> list[tuple[PartitionSpec, int, int | None]]:
    """MiB offsets ``(spec, start, end)`` for parted; end None means 100%."""
    if not plan_fits(plan, capacity):
        raise ValueError("Partition plan exceeds disk capacity")
    problems = plan_problems(plan)
    if problems:
        raise ValueError(problems[0])
    layout = []
    start = 1
    for spec in plan:
        if spec.size is None:
            layout.append((spec, start, None))
            break
        end = start + spec.size // MIB
        layout.append((spec, start, end))
        start = end
    return layout


def partition_path(device: str, number: int) -> str:
    """Partition device node, e.g. /dev/sda2 or /dev/nvme0n1p2."""
    sep = "p" if re.search(r"(nvme|mmcblk|loop)\d", device) else ""
    return f"{device}{sep}{number}"
