"""Shared installer configuration passed between wizard pages."""

import re
from dataclasses import dataclass, field

from .disks import Disk, PartitionSpec, fixed_size, plan_fits, plan_problems
from .resources import INSTALL_LOG_PATH, KERNELS, MOUNTPOINT

HOSTNAME_RE = re.compile(r"^[a-zA-Z0-9]([a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?$")
USERNAME_RE = re.compile(r"^[a-z_][a-z0-9_-]{0,31}$")

RESERVED_USERNAMES = {"root", "nixbld", "nobody", "messagebus", "sshd"}


@dataclass
class UserAccount:
    username: str
    password_hash: str
    admin: bool = False
    groups: list[str] = field(default_factory=list)

    @property
    def extra_groups(self) -> list[str]:
        groups = ["wheel"] if self.admin else []
        return groups + [g for g in self.groups if g != "wheel"]


@dataclass
class InstallerState:
    """Choices accumulated across the wizard.

    Any field may be unset while the user is still moving through the pages;
    ``missing_fields`` and ``problems`` tell what is required before the
    installation can start.
    """

    # Disk selection
    target_device: str = ""
    target_device_model: str = ""
    target_device_size: int = 0
    target_sector_size: int = 512

    # Partitioning
    partition_scheme: str = ""
    partitions: list[PartitionSpec] = field(default_factory=list)
    root_filesystem: str = "ext4"

    # System
    bootloader: str = "systemd-boot"
    kernel: str = "linux"
    desktop: str = ""
    audio: str = "pipewire"
    network: str = "networkmanager"
    enable_flakes: bool = False

    # Remote access
    ssh_enabled: bool = False
    ssh_port: int = 22
    ssh_password_auth: bool = True
    ssh_root_login: bool = False

    # Locale
    hostname: str = "nixos"
    locale: str = "en_US.UTF-8"
    timezone: str = "UTC"
    keyboard_layout: str = "us"

    # Accounts
    users: list[UserAccount] = field(default_factory=list)
    root_password_hash: str = ""

    # Packages
    packages: list[str] = field(default_factory=list)

    # Runtime options, set from the command line
    mountpoint: str = MOUNTPOINT
    install_log: str = INSTALL_LOG_PATH
    dry_run: bool = False

    # -- Disk ---------------------------------------------------------------

    def select_device(self, disk: Disk) -> None:
        """Target ``disk``; the partition plan is dropped when the device changes."""
        if disk.path != self.target_device or disk.size != self.target_device_size:
            self.partition_scheme = ""
            self.partitions = []
        self.target_device = disk.path
        self.target_device_model = disk.model
        self.target_device_size = disk.size
        self.target_sector_size = disk.sector_size

    def set_partitions(self, scheme: str, plan: list[PartitionSpec]) -> None:
        self.partition_scheme = scheme
        self.partitions = list(plan)

    def set_root_filesystem(self, fs_type: str) -> None:
        """Use ``fs_type`` for every Linux data partition of the plan."""
        self.root_filesystem = fs_type
        for spec in self.partitions:
            if spec.mountpoint in ("/", "/home"):
                spec.fs_type = fs_type

    @property
    def free_space(self) -> int:
        """Bytes not claimed by fixed-size partitions of the plan."""
        if not self.target_device_size:
            return 0
        return max(0, self.target_device_size - fixed_size(self.partitions))

    @property
    def root_partition(self) -> PartitionSpec | None:
        return next((p for p in self.partitions if p.mountpoint == "/"), None)

    # -- Users --------------------------------------------------------------

    def find_user(self, username: str) -> UserAccount | None:
        return next((u for u in self.users if u.username == username), None)

    def add_user(self, user: UserAccount) -> None:
        if self.find_user(user.username) is not None:
            raise ValueError(f"User '{user.username}' already exists")
        self.users.append(user)

    def replace_user(self, username: str, user: UserAccount) -> None:
        for i, existing in enumerate(self.users):
            if existing.username == username:
                if user.username != username and self.find_user(user.username):
                    raise ValueError(f"User '{user.username}' already exists")
                self.users[i] = user
                return
        raise KeyError(username)

    def remove_user(self, username: str) -> None:
        self.users = [u for u in self.users if u.username != username]

    def has_root_access(self) -> bool:
        return bool(self.root_password_hash) or any(u.admin for u in self.users)

    # -- Packages -----------------------------------------------------------

    def toggle_package(self, name: str) -> bool:
        """Add or remove a package; True when it is now selected."""
        if name in self.packages:
            self.packages.remove(name)
            return False
        self.packages.append(name)
        return True

    # -- Validation ---------------------------------------------------------

    def missing_fields(self) -> list[str]:
        missing = []
        if not self.target_device:
            missing.append("target device")
        if not self.partitions:
            missing.append("partition plan")
        if not self.bootloader:
            missing.append("bootloader")
        if not self.hostname:
            missing.append("hostname")
        if not self.locale:
            missing.append("locale")
        if not self.users:
            missing.append("user account")
        return missing

    def problems(self) -> list[str]:
        """Consistency errors of the fields that are set."""
        problems = []
        if self.partitions:
            if not plan_fits(self.partitions, self.target_device_size):
                problems.append("Partition sizes exceed the capacity of "
                                f"{self.target_device or 'the target device'}")
            if self.root_partition is None:
                problems.append("No partition is mounted at /")
            if not any(p.is_esp for p in self.partitions):
                problems.append("No EFI system partition in the plan")
            problems += plan_problems(self.partitions)
        if self.kernel not in KERNELS:
            problems.append(f"Unknown kernel: {self.kernel}")
        if self.ssh_enabled and not 1 <= self.ssh_port <= 65535:
            problems.append(f"Invalid SSH port: {self.ssh_port}")
        if self.hostname and not HOSTNAME_RE.match(self.hostname):
            problems.append(f"Invalid hostname: {self.hostname}")
        for user in self.users:
            if not USERNAME_RE.match(user.username) or user.username in RESERVED_USERNAMES:
                problems.append(f"Invalid username: {user.username}")
            if not user.password_hash:
                problems.append(f"User '{user.username}' has no password")
        if self.users and not self.has_root_access():
            problems.append("Set a root password or make a user an administrator")
        return problems
