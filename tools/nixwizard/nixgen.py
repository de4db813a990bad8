"""Generate configuration.nix and the disko partition layout from the state."""

import logging
import re
import shutil
import subprocess
from dataclasses import dataclass

from .disks import disko_size
from .resources import KEYBOARD_LAYOUTS, STATE_VERSION
from .state import InstallerState

logger = logging.getLogger(__name__)

_IDENT_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_'-]*$")

DESKTOP_OPTIONS = {
    "gnome": {"services.xserver.enable": True,
              "services.xserver.desktopManager.gnome.enable": True,
              "services.xserver.displayManager.gdm.enable": True},
    "plasma": {"services.desktopManager.plasma6.enable": True,
               "services.displayManager.sddm.enable": True},
    "xfce": {"services.xserver.enable": True,
             "services.xserver.desktopManager.xfce.enable": True},
    "cinnamon": {"services.xserver.enable": True,
                 "services.xserver.desktopManager.cinnamon.enable": True},
    "mate": {"services.xserver.enable": True,
             "services.xserver.desktopManager.mate.enable": True},
    "lxqt": {"services.xserver.enable": True,
             "services.xserver.desktopManager.lxqt.enable": True},
    "budgie": {"services.xserver.enable": True,
               "services.xserver.desktopManager.budgie.enable": True},
    "hyprland": {"programs.hyprland.enable": True},
    "i3": {"services.xserver.enable": True,
           "services.xserver.windowManager.i3.enable": True},
}

AUDIO_OPTIONS = {
    "pipewire": {"services.pipewire.enable": True,
                 "services.pipewire.pulse.enable": True,
                 "security.rtkit.enable": True},
    "pulseaudio": {"services.pulseaudio.enable": True},
}

NETWORK_OPTIONS = {
    "networkmanager": {"networking.networkmanager.enable": True},
    "wpa_supplicant": {"networking.wireless.enable": True},
    "systemd-networkd": {"networking.useNetworkd": True,
                         "systemd.network.enable": True},
}

KERNEL_PACKAGES = {
    "linux": "linuxPackages",
    "linux-latest": "linuxPackages_latest",
    "linux-zen": "linuxPackages_zen",
    "linux-hardened": "linuxPackages_hardened",
}


class NixExpr(str):
    """A raw Nix expression, emitted without quoting."""


@dataclass
class Configs:
    system: str
    disko: str


def nix_str(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"').replace("${", "\\${")
    return f'"{escaped}"'


def nix_key(key: str) -> str:
    return key if _IDENT_RE.match(key) else nix_str(key)


def _value(value, indent: int) -> str:
    if isinstance(value, NixExpr):
        return str(value)
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str):
        return nix_str(value)
    if isinstance(value, (list, tuple)):
        if not value:
            return "[ ]"
        return "[ " + " ".join(_value(v, indent) for v in value) + " ]"
    if isinstance(value, dict):
        return render_nix(value, indent)
    raise TypeError(f"Cannot express {type(value).__name__} in Nix")


def render_nix(attrs: dict, indent: int = 0) -> str:
    """Print a nested mapping as a Nix attribute set.

    Chains of single-key sets collapse into dotted paths, so
    ``{"boot": {"loader": {"timeout": 5}}}`` prints as
    ``boot.loader.timeout = 5;``.
    """
    if not attrs:
        return "{ }"
    pad = "  " * (indent + 1)
    lines = ["{"]
    for key, value in attrs.items():
        path = [nix_key(key)]
        while isinstance(value, dict) and len(value) == 1:
            (sub_key, value), = value.items()
            path.append(nix_key(sub_key))
        lines.append(f"{pad}{'.'.join(path)} = {_value(value, indent + 1)};")
    lines.append("  " * indent + "}")
    return "\n".join(lines)


def _set_path(attrs: dict, dotted: str, value) -> None:
    """Assign ``value`` at a dotted path, creating intermediate sets."""
    keys = dotted.split(".")
    node = attrs
    for key in keys[:-1]:
        node = node.setdefault(key, {})
    node[keys[-1]] = value


def _merge(attrs: dict, options: dict) -> None:
    for dotted, value in options.items():
        _set_path(attrs, dotted, value)


# ---------------------------------------------------------------------------
# System configuration
# ---------------------------------------------------------------------------


def system_attrs(state: InstallerState) -> dict:
    """The NixOS module for ``state`` as a nested mapping."""
    attrs: dict = {"imports": [NixExpr("./hardware-configuration.nix")]}

    if state.bootloader == "grub":
        _merge(attrs, {
            "boot.loader.grub.enable": True,
            "boot.loader.grub.device": "nodev",
            "boot.loader.grub.efiSupport": True,
            "boot.loader.efi.canTouchEfiVariables": True,
        })
    elif state.bootloader == "systemd-boot":
        _merge(attrs, {
            "boot.loader.systemd-boot.enable": True,
            "boot.loader.efi.canTouchEfiVariables": True,
        })

    if state.kernel in KERNEL_PACKAGES:
        _set_path(attrs, "boot.kernelPackages", NixExpr(f"pkgs.{KERNEL_PACKAGES[state.kernel]}"))

    file_systems = {}
    swap_devices = []
    for spec in state.partitions:
        device = f"/dev/disk/by-label/{spec.label}"
        if spec.fs_type == "swap":
            swap_devices.append({"device": device})
            continue
        entry = {"device": device, "fsType": spec.disko_format}
        if spec.is_esp:
            entry["options"] = ["fmask=0022", "dmask=0022"]
        file_systems[spec.mountpoint] = entry
    if file_systems:
        attrs["fileSystems"] = file_systems
    if swap_devices:
        attrs["swapDevices"] = swap_devices

    _set_path(attrs, "networking.hostName", state.hostname)
    _set_path(attrs, "time.timeZone", state.timezone)
    _set_path(attrs, "i18n.defaultLocale", state.locale)
    xkb, console = KEYBOARD_LAYOUTS.get(state.keyboard_layout, ("us", "us"))
    _set_path(attrs, "services.xserver.xkb.layout", xkb)
    _set_path(attrs, "console.keyMap", console)

    _merge(attrs, NETWORK_OPTIONS.get(state.network, {}))
    _merge(attrs, AUDIO_OPTIONS.get(state.audio, {}))
    _merge(attrs, DESKTOP_OPTIONS.get(state.desktop, {}))

    if state.ssh_enabled:
        _merge(attrs, {
            "services.openssh.enable": True,
            "services.openssh.ports": [state.ssh_port],
            "services.openssh.settings.PasswordAuthentication": state.ssh_password_auth,
            "services.openssh.settings.PermitRootLogin": "yes" if state.ssh_root_login else "no",
        })

    users = {}
    for user in state.users:
        users[user.username] = {
            "isNormalUser": True,
            "extraGroups": user.extra_groups,
            "hashedPassword": user.password_hash,
        }
    if state.root_password_hash:
        users["root"] = {"hashedPassword": state.root_password_hash}
    if users:
        # Passwords are declarative; keep them authoritative.
        _set_path(attrs, "users.mutableUsers", False)
        _set_path(attrs, "users.users", users)

    if state.packages:
        names = " ".join(state.packages)
        _set_path(attrs, "environment.systemPackages", NixExpr(f"with pkgs; [ {names} ]"))
    if state.enable_flakes:
        _set_path(attrs, "nix.settings.experimental-features", ["nix-command", "flakes"])

    _set_path(attrs, "system.stateVersion", STATE_VERSION)
    return attrs


def system_config(state: InstallerState) -> str:
    return "{ config, pkgs, ... }:\n\n" + render_nix(system_attrs(state)) + "\n"


# ---------------------------------------------------------------------------
# Disk layout
# ---------------------------------------------------------------------------


def disko_attrs(state: InstallerState) -> dict:
    partitions = {}
    for priority, spec in enumerate(state.partitions, start=1):
        if spec.fs_type == "swap":
            content = {"type": "swap"}
        else:
            content = {
                "type": "filesystem",
                "format": spec.disko_format,
                "mountpoint": spec.mountpoint,
                "extraArgs": ["-L" if spec.fs_type != "fat32" else "-n", spec.label],
            }
        partitions[spec.label] = {
            "priority": priority,
            "size": "100%" if spec.size is None else disko_size(spec.size),
            "type": spec.gpt_code,
            "content": content,
        }
    return {
        "disko": {
            "devices": {
                "disk": {
                    "main": {
                        "device": state.target_device,
                        "type": "disk",
                        "content": {"type": "gpt", "partitions": partitions},
                    }
                }
            }
        }
    }


def disko_config(state: InstallerState) -> str:
    return render_nix(disko_attrs(state)) + "\n"


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------


def format_nix(text: str) -> str:
    """Pipe ``text`` through nixfmt when available."""
    nixfmt = shutil.which("nixfmt")
    if nixfmt is None:
        return text
    result = subprocess.run([nixfmt], input=text, capture_output=True, text=True)
    if result.returncode != 0:
        logger.warning("nixfmt failed, keeping unformatted output: %s", result.stderr.strip())
        return text
    return result.stdout


def write_configs(state: InstallerState, *, formatted: bool = True) -> Configs:
    system = system_config(state)
    disko = disko_config(state)
    if formatted:
        system, disko = format_nix(system), format_nix(disko)
    return Configs(system=system, disko=disko)
