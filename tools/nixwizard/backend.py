"""Installation backend: shell command sequences for system deployment.

Partitioning, formatting, mounting, configuration and nixos-install are
encapsulated here. Every command runs through CommandRunner for consistent
logging and error handling.
"""

import logging
import os
import shlex
import subprocess
import time
from pathlib import Path
from typing import Callable

from .disks import layout_plan, partition_path
from .nixgen import write_configs
from .resources import INSTALL_LOG_PATH, MOUNTPOINT
from .state import InstallerState

logger = logging.getLogger(__name__)


class InstallError(Exception):
    """Base exception for installation failures."""

    def __init__(self, message: str, step: str = "", recoverable: bool = False):
        super().__init__(message)
        self.step = step
        self.recoverable = recoverable


class CommandError(InstallError):
    """An external command exited with a non-zero status."""

    def __init__(self, cmd: list[str], returncode: int):
        super().__init__(f"Command failed (exit {returncode}): {_fmt_cmd(cmd)}")
        self.cmd = cmd
        self.returncode = returncode


class PreflightError(InstallError):
    """The configuration is not safe to install; nothing was executed."""

    def __init__(self, problems: list[str]):
        super().__init__(
            "Pre-flight check failed:\n" + "\n".join(f"  • {p}" for p in problems),
            step="pre-flight",
            recoverable=True,
        )
        self.problems = problems


def _fmt_cmd(cmd: list[str]) -> str:
    return " ".join(shlex.quote(c) for c in cmd)


class CommandRunner:
    """Runs shell commands with real-time output streaming."""

    def __init__(
        self,
        log_callback: Callable[[str], None],
        log_path: str = INSTALL_LOG_PATH,
        dry_run: bool = False,
    ):
        self.log = log_callback
        self.dry_run = dry_run
        self._log_file = open(log_path, "a")

    def close(self):
        self._log_file.close()

    def _write_log(self, line: str) -> None:
        self.log(line)
        self._log_file.write(line + "\n")
        self._log_file.flush()

    def run(
        self,
        cmd: list[str],
        check: bool = True,
        env: dict | None = None,
    ) -> subprocess.CompletedProcess:
        """Run a command, streaming stdout/stderr line by line."""
        self._write_log(f">>> {_fmt_cmd(cmd)}")
        logger.info("CMD %s", _fmt_cmd(cmd))
        if self.dry_run:
            return subprocess.CompletedProcess(cmd, 0, "", "")

        merged_env = os.environ.copy()
        if env:
            merged_env.update(env)

        try:
            proc = subprocess.Popen(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                env=merged_env,
            )
        except OSError as e:
            raise InstallError(f"Cannot run {cmd[0]}: {e}") from e
        output_lines: list[str] = []
        for line in proc.stdout:
            line = line.rstrip("\n")
            output_lines.append(line)
            self._write_log(line)
        proc.wait()

        if check and proc.returncode != 0:
            raise CommandError(cmd, proc.returncode)
        return subprocess.CompletedProcess(
            cmd, proc.returncode, "\n".join(output_lines), ""
        )

    def write_file(self, path: str, content: str) -> None:
        """Write content to a file, creating parent directories."""
        self._write_log(f">>> write {path} ({len(content)} bytes)")
        if self.dry_run:
            return
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        Path(path).write_text(content)


def hash_password(password: str) -> str:
    """SHA-512 crypt hash of ``password`` as produced by mkpasswd."""
    try:
        result = subprocess.run(
            ["mkpasswd", "--method=SHA-512", "--rounds=4096", "--stdin"],
            input=password,
            capture_output=True,
            text=True,
        )
    except OSError as e:
        raise InstallError(f"Cannot run mkpasswd: {e}") from e
    if result.returncode != 0:
        raise InstallError(f"mkpasswd failed: {result.stderr.strip()}")
    return result.stdout.strip()


# ---------------------------------------------------------------------------
# Installation steps
# ---------------------------------------------------------------------------


def _numbered(state: InstallerState):
    """Yield ``(number, device_path, spec)`` for every planned partition."""
    for number, spec in enumerate(state.partitions, start=1):
        yield number, partition_path(state.target_device, number), spec


def partition_disk(runner: CommandRunner, state: InstallerState) -> None:
    """Create a GPT partition table following the plan."""
    device = state.target_device
    runner.run(["wipefs", "--all", "--force", device])
    runner.run(["parted", "-s", device, "mklabel", "gpt"])

    layout = layout_plan(state.partitions, state.target_device_size)
    for number, (spec, start, end) in enumerate(layout, start=1):
        fs = "linux-swap" if spec.fs_type == "swap" else spec.fs_type
        runner.run([
            "parted", "-s", device, "mkpart", spec.label, fs,
            f"{start}MiB", "100%" if end is None else f"{end}MiB",
        ])
        if spec.is_esp:
            runner.run(["parted", "-s", device, "set", str(number), "esp", "on"])

    # Wait for kernel to register new partitions
    runner.run(["partprobe", device])
    runner.run(["udevadm", "settle"], check=False)


def format_partitions(runner: CommandRunner, state: InstallerState) -> None:
    """Create filesystems labelled after their partition."""
    for _, path, spec in _numbered(state):
        if spec.fs_type == "fat32":
            runner.run(["mkfs.fat", "-F", "32", "-n", spec.label, path])
        elif spec.fs_type == "swap":
            runner.run(["mkswap", "-L", spec.label, path])
        elif spec.fs_type == "ext4":
            runner.run(["mkfs.ext4", "-F", "-L", spec.label, path])
        elif spec.fs_type in ("btrfs", "xfs"):
            runner.run([f"mkfs.{spec.fs_type}", "-f", "-L", spec.label, path])
        else:
            raise InstallError(f"Unsupported filesystem: {spec.fs_type}")


def mount_filesystems(runner: CommandRunner, state: InstallerState,
                      mountpoint: str = MOUNTPOINT) -> None:
    """Mount the planned tree under ``mountpoint``, parents first."""
    mounts = [(spec.mountpoint, path) for _, path, spec in _numbered(state) if spec.mountpoint]
    for target, path in sorted(mounts, key=lambda m: m[0].count("/") if m[0] != "/" else 0):
        where = mountpoint if target == "/" else f"{mountpoint}{target}"
        runner.run(["mkdir", "-p", where])
        runner.run(["mount", path, where])
    for _, path, spec in _numbered(state):
        if spec.fs_type == "swap":
            runner.run(["swapon", path])


def write_configuration(runner: CommandRunner, state: InstallerState,
                        mountpoint: str = MOUNTPOINT) -> None:
    """Generate hardware-configuration.nix and write configuration.nix."""
    runner.run(["nixos-generate-config", "--root", mountpoint, "--no-filesystems"])
    configs = write_configs(state)
    runner.write_file(f"{mountpoint}/etc/nixos/configuration.nix", configs.system)
    runner.write_file(f"{mountpoint}/etc/nixos/disko-layout.nix", configs.disko)


def install_system(runner: CommandRunner, state: InstallerState,
                   mountpoint: str = MOUNTPOINT) -> None:
    """Build and install the system described by configuration.nix."""
    # Passwords are declared as hashes in configuration.nix
    runner.run(["nixos-install", "--root", mountpoint, "--no-root-passwd"])


def final_cleanup(runner: CommandRunner, state: InstallerState,
                  mountpoint: str = MOUNTPOINT) -> None:
    """Sync and unmount all filesystems."""
    runner.run(["sync"])
    for _, path, spec in _numbered(state):
        if spec.fs_type == "swap":
            runner.run(["swapoff", path], check=False)
    # Unmount with retries
    for attempt in range(3):
        result = runner.run(["umount", "-R", mountpoint], check=False)
        if result.returncode == 0:
            return
        time.sleep(2)
    # Final attempt lazily
    runner.run(["umount", "-lR", mountpoint], check=False)
