"""Tests for nixwizard/disks.py

Covers lsblk parsing, size parsing and the preset partition plans.
"""

import json
import subprocess
from unittest.mock import patch

import pytest

from nixwizard.disks import (
    PartitionSpec,
    build_scheme,
    check_label,
    check_mount_point,
    default_label,
    disko_size,
    find_disk,
    fixed_size,
    format_size,
    layout_plan,
    parse_lsblk,
    parse_size,
    partition_path,
    plan_fits,
    plan_problems,
    scan_disks,
)
from nixwizard.resources import BOOT_PARTITION_SIZE, GIB, MIB

LSBLK_OUTPUT = {
    "blockdevices": [
        {"name": "sda", "path": "/dev/sda", "size": 68719476736, "model": "Test SSD  ",
         "type": "disk", "tran": "sata", "ro": False, "rm": False, "phy-sec": 4096,
         "children": [
             {"name": "sda1", "size": 536870912, "fstype": "vfat", "label": "EFI",
              "mountpoint": "/run/media/efi", "type": "part"},
         ]},
        {"name": "sr0", "path": "/dev/sr0", "size": 1073741824, "model": "DVD",
         "type": "rom", "tran": "sata", "ro": "0", "rm": "1"},
        {"name": "loop0", "path": "/dev/loop0", "size": 1073741824, "type": "loop"},
        {"name": "sdb", "path": "/dev/sdb", "size": 34359738368, "model": None,
         "type": "disk", "tran": "usb", "ro": "1", "rm": "1"},
        {"name": "nvme0n1", "size": 512110190592, "model": "NVMe", "type": "disk",
         "tran": "nvme", "ro": "0", "rm": "0"},
    ]
}


# ─────────────────────────────────────────────────────────────────────────────
# lsblk Parsing Tests
# ─────────────────────────────────────────────────────────────────────────────


class TestParseLsblk:
    """Tests for turning lsblk JSON into Disk objects."""

    def test_keeps_only_writable_disks(self):
        """Should skip roms, loop devices and read-only disks."""
        disks = parse_lsblk(LSBLK_OUTPUT)
        assert [d.path for d in disks] == ["/dev/sda", "/dev/nvme0n1"]

    def test_reads_attributes(self):
        """Should read size, model, transport and sector size."""
        sda = parse_lsblk(LSBLK_OUTPUT)[0]
        assert sda.size == 64 * GIB
        assert sda.model == "Test SSD"
        assert sda.transport == "SATA"
        assert sda.sector_size == 4096

    def test_reads_partitions_and_mounts(self):
        """Existing partitions and their mountpoints should be listed."""
        sda = parse_lsblk(LSBLK_OUTPUT)[0]
        assert sda.partitions[0].label == "EFI"
        assert sda.mounted == ["/run/media/efi"]

    def test_fills_missing_path(self):
        """A device without a path column should get /dev/<name>."""
        nvme = parse_lsblk(LSBLK_OUTPUT)[1]
        assert nvme.path == "/dev/nvme0n1"
        assert nvme.partitions == []

    def test_empty_output(self):
        """Should return no disks for empty output."""
        assert parse_lsblk({}) == []


class TestScanDisks:
    """Tests for running lsblk."""

    def test_scan_runs_lsblk(self):
        """Should parse the JSON printed by lsblk."""
        completed = subprocess.CompletedProcess([], 0, json.dumps(LSBLK_OUTPUT), "")
        with patch("nixwizard.disks.subprocess.run", return_value=completed) as run:
            disks = scan_disks()
        assert run.call_args[0][0][0] == "lsblk"
        assert len(disks) == 2

    def test_scan_propagates_failure(self):
        """lsblk failures should reach the caller."""
        error = subprocess.CalledProcessError(1, ["lsblk"])
        with patch("nixwizard.disks.subprocess.run", side_effect=error):
            with pytest.raises(subprocess.CalledProcessError):
                scan_disks()

    def test_scan_rejects_garbage(self):
        """Non-JSON output should raise a decode error."""
        completed = subprocess.CompletedProcess([], 0, "not json", "")
        with patch("nixwizard.disks.subprocess.run", return_value=completed):
            with pytest.raises(json.JSONDecodeError):
                scan_disks()

    def test_find_disk(self, sample_disk):
        """Should find a device by path and return None when it is gone."""
        with patch("nixwizard.disks.scan_disks", return_value=[sample_disk]):
            assert find_disk("/dev/sda") is sample_disk
            assert find_disk("/dev/sdz") is None


# ─────────────────────────────────────────────────────────────────────────────
# Size Tests
# ─────────────────────────────────────────────────────────────────────────────


class TestSizes:
    """Tests for size formatting and parsing."""

    @pytest.mark.parametrize("text,expected", [
        ("512MiB", 512 * MIB),
        ("20G", 20 * GIB),
        ("20 GiB", 20 * GIB),
        ("1.5gib", int(1.5 * GIB)),
        ("10GB", 10 * 10 ** 9),
        ("1048576", MIB),
    ])
    def test_parse_units(self, text, expected):
        """Binary and decimal suffixes should be understood."""
        assert parse_size(text, 100 * GIB) == expected

    def test_parse_percent(self):
        """A percentage should be a share of the capacity."""
        assert parse_size("25%", 100 * GIB) == 25 * GIB

    @pytest.mark.parametrize("text", ["rest", "REMAINING", "*"])
    def test_parse_rest(self, text):
        """Rest keywords should mean the remaining space."""
        assert parse_size(text, GIB) is None

    @pytest.mark.parametrize("text", ["", "abc", "-5G", "0", "150%", "0%", "100KiB", "0.0001%"])
    def test_parse_rejects(self, text):
        """Nonsense sizes should raise ValueError."""
        with pytest.raises(ValueError):
            parse_size(text, 100 * GIB)

    @pytest.mark.parametrize("text", ["inf", "1e400", "nan", "-inf", "1e400GiB"])
    def test_parse_rejects_non_finite(self, text):
        """Infinite or undefined numbers should not become sizes."""
        with pytest.raises(ValueError):
            parse_size(text, 100 * GIB)

    def test_parse_minimum(self):
        """Anything below 1 MiB should be refused with a message."""
        with pytest.raises(ValueError, match="at least 1 MiB"):
            parse_size("1023KiB", 100 * GIB)
        assert parse_size("1MiB", 100 * GIB) == MIB

    def test_format_size(self):
        """Should print binary units with one decimal."""
        assert format_size(64 * GIB) == "64.0 GiB"
        assert format_size(500 * MIB) == "500.0 MiB"
        assert format_size(12) == "12 B"

    def test_disko_size_in_mib(self):
        """disko sizes should be whole MiB."""
        assert disko_size(BOOT_PARTITION_SIZE) == "500M"
        assert disko_size(8 * GIB) == "8192M"


# ─────────────────────────────────────────────────────────────────────────────
# Partition Plan Tests
# ─────────────────────────────────────────────────────────────────────────────


class TestBuildScheme:
    """Tests for the preset layouts."""

    def test_basic(self):
        """Basic should be an ESP plus a root filling the disk."""
        plan = build_scheme("basic", 64 * GIB, "btrfs")
        assert [p.label for p in plan] == ["BOOT", "ROOT"]
        assert plan[0].is_esp
        assert plan[0].size == BOOT_PARTITION_SIZE
        assert plan[1].size is None
        assert plan[1].fs_type == "btrfs"

    def test_swap_follows_memory(self):
        """Swap should match memory, bounded to 1..8 GiB."""
        assert build_scheme("swap", 64 * GIB, memory=2 * GIB)[1].size == 2 * GIB
        assert build_scheme("swap", 64 * GIB, memory=64 * GIB)[1].size == 8 * GIB
        assert build_scheme("swap", 64 * GIB, memory=256 * MIB)[1].size == GIB

    def test_home_split(self):
        """Home should give root 40% and home the rest."""
        plan = build_scheme("home", 100 * GIB)
        assert plan[1].mountpoint == "/"
        assert plan[1].size == 40 * GIB
        assert plan[2].mountpoint == "/home"
        assert plan[2].size is None

    def test_unknown_scheme(self):
        """Unknown scheme names should raise ValueError."""
        with pytest.raises(ValueError):
            build_scheme("raid", 64 * GIB)


class TestPlanFits:
    """Tests for capacity checks and parted offsets."""

    def test_fits(self):
        """A preset should fit a 64 GiB disk."""
        assert plan_fits(build_scheme("basic", 64 * GIB), 64 * GIB)

    def test_oversized_fixed_partition(self):
        """Fixed partitions larger than the disk should not fit."""
        plan = [PartitionSpec("BOOT", "/boot", "fat32", BOOT_PARTITION_SIZE, ["esp"]),
                PartitionSpec("ROOT", "/", "ext4", 64 * GIB)]
        assert not plan_fits(plan, 64 * GIB)

    def test_rest_needs_room(self):
        """A rest partition should need a minimum of free space."""
        plan = [PartitionSpec("BOOT", "/boot", "fat32", 63 * GIB, ["esp"]),
                PartitionSpec("ROOT", "/", "ext4")]
        assert not plan_fits(plan, 64 * GIB)
        assert fixed_size(plan) == 63 * GIB

    def test_layout_offsets(self):
        """Partitions should be laid out back to back from 1 MiB."""
        layout = layout_plan(build_scheme("swap", 64 * GIB, memory=2 * GIB), 64 * GIB)
        assert [(s.label, start, end) for s, start, end in layout] == [
            ("BOOT", 1, 501),
            ("SWAP", 501, 2549),
            ("ROOT", 2549, None),
        ]

    def test_layout_rejects_rest_in_middle(self):
        """Only the last partition may take the rest."""
        plan = [PartitionSpec("ROOT", "/", "ext4"),
                PartitionSpec("BOOT", "/boot", "fat32", BOOT_PARTITION_SIZE, ["esp"])]
        with pytest.raises(ValueError):
            layout_plan(plan, 64 * GIB)

    @pytest.mark.parametrize("device,expected", [
        ("/dev/sda", "/dev/sda2"),
        ("/dev/vda", "/dev/vda2"),
        ("/dev/nvme0n1", "/dev/nvme0n1p2"),
        ("/dev/mmcblk0", "/dev/mmcblk0p2"),
    ])
    def test_partition_path(self, device, expected):
        """NVMe and MMC devices should use a p separator."""
        assert partition_path(device, 2) == expected


# ─────────────────────────────────────────────────────────────────────────────
# Manual Partitioning Tests
# ─────────────────────────────────────────────────────────────────────────────


class TestPartitionChecks:
    """Tests for label and mount point validation."""

    def test_valid_labels(self):
        check_label("ROOT", "ext4")
        check_label("nixos-data_1", "btrfs")

    @pytest.mark.parametrize("label,fs_type", [
        ("", "ext4"),
        ("MY DATA", "ext4"),
        ("DATÄ", "ext4"),
        ("A" * 17, "ext4"),
        ("A" * 12, "fat32"),
    ])
    def test_invalid_labels(self, label, fs_type):
        """Empty, spaced, non-ASCII and overlong labels should be refused."""
        with pytest.raises(ValueError):
            check_label(label, fs_type)

    @pytest.mark.parametrize("mountpoint", ["", "home", "/home/", "/my data", "/var//log", "/boot"])
    def test_invalid_mount_points(self, mountpoint):
        with pytest.raises(ValueError):
            check_mount_point(mountpoint, ["/", "/boot"])

    def test_valid_mount_points(self):
        check_mount_point("/", [])
        check_mount_point("/var/lib", ["/", "/boot"])

    def test_default_labels(self):
        """Labels should follow the mount point and fit the filesystem."""
        assert default_label("/", "ext4") == "ROOT"
        assert default_label("/var/lib", "ext4") == "VAR-LIB"
        assert default_label("", "swap") == "SWAP"
        assert default_label("/srv/very-long-name", "fat32") == "SRV-VERY-LO"

    def test_refresh_flags(self):
        """Only a FAT32 partition at /boot should be the ESP."""
        spec = PartitionSpec("EFI", "/boot", "fat32", BOOT_PARTITION_SIZE)
        spec.refresh_flags()
        assert spec.is_esp
        spec.mountpoint = "/efi"
        spec.refresh_flags()
        assert not spec.is_esp
        assert spec.gpt_code == "0700"


class TestPlanProblems:
    """Tests for whole-plan validation."""

    def test_presets_are_clean(self):
        for name in ("basic", "swap", "home"):
            assert plan_problems(build_scheme(name, 64 * GIB, memory=2 * GIB)) == []

    def test_small_esp(self):
        """An ESP below 100 MiB should be reported."""
        plan = [PartitionSpec("BOOT", "/boot", "fat32", 50 * MIB, ["esp", "boot"]),
                PartitionSpec("ROOT", "/", "ext4")]
        assert any("EFI system partition" in p for p in plan_problems(plan))

    def test_tiny_partition(self):
        plan = [PartitionSpec("BOOT", "/boot", "fat32", BOOT_PARTITION_SIZE, ["esp", "boot"]),
                PartitionSpec("TINY", "/tiny", "ext4", 4096),
                PartitionSpec("ROOT", "/", "ext4")]
        assert plan_problems(plan) == ["Partition TINY is smaller than 1 MiB"]

    def test_duplicates(self):
        """Labels and mount points may each be used once."""
        plan = [PartitionSpec("ROOT", "/", "ext4", 10 * GIB),
                PartitionSpec("ROOT", "/", "ext4")]
        problems = plan_problems(plan)
        assert "Label ROOT is used twice" in problems
        assert "Mount point / is used twice" in problems

    def test_rest_partitions(self):
        plan = [PartitionSpec("ROOT", "/", "ext4"), PartitionSpec("HOME", "/home", "ext4")]
        assert plan_problems(plan) == ["Only one partition may use the remaining space"]

    def test_missing_mount_point(self):
        """Missing mount points should only count for a complete plan."""
        plan = [PartitionSpec("DATA", "", "ext4", GIB), PartitionSpec("SWAP", "", "swap", GIB)]
        assert plan_problems(plan) == ["Partition DATA has no mount point"]
        assert plan_problems(plan, complete=False) == []
