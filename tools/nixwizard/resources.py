"""Text constants, choice catalogues, and installation paths."""

MOUNTPOINT = "/mnt"
INSTALL_LOG_PATH = "/tmp/nixwizard-install.log"
DEBUG_LOG_PATH = "/tmp/nixwizard-debug.log"
STATE_VERSION = "25.05"

# Seconds between Tick events while no key is pressed
TICK_RATE = 0.25

# Minimum disk size in bytes (20 GiB)
MIN_DISK_SIZE = 20 * 1024 * 1024 * 1024

# Partition plan sizing
MIB = 1024 * 1024
GIB = 1024 * MIB
BOOT_PARTITION_SIZE = 500 * MIB
MIN_ESP_SIZE = 100 * MIB
MIN_REST_SIZE = 4 * GIB
MAX_SWAP_SIZE = 8 * GIB

# Scheme name of a plan edited partition by partition
CUSTOM_SCHEME = "custom"

PARTITION_SCHEMES = {
    "basic": {
        "name": "Boot + root",
        "description": "EFI system partition and a single root filesystem "
                       "using the rest of the disk.",
    },
    "swap": {
        "name": "Boot + swap + root",
        "description": "Adds a swap partition sized from installed memory "
                       "(at most 8 GiB).",
    },
    "home": {
        "name": "Boot + root + /home",
        "description": "Root takes 40% of the disk, /home takes the rest.",
    },
}

FILESYSTEMS = {
    "ext4": "Mature journaling filesystem, the safe default.",
    "btrfs": "Copy-on-write with snapshots and compression.",
    "xfs": "High-performance journaling for large files.",
}

# Filesystems offered when editing a single partition
PARTITION_FILESYSTEMS = {
    "ext4": "ext4",
    "btrfs": "Btrfs",
    "xfs": "XFS",
    "fat32": "FAT32 (EFI system partition when mounted at /boot)",
    "swap": "Swap",
}

BOOTLOADERS = {
    "systemd-boot": "systemd-boot (UEFI)",
    "grub": "GRUB (UEFI)",
}

KERNELS = {
    "linux": "Linux (NixOS default)",
    "linux-latest": "Linux (latest)",
    "linux-zen": "Linux Zen",
    "linux-hardened": "Linux Hardened",
    "": "None (custom kernel)",
}

DESKTOPS = {
    "": "None (console only)",
    "gnome": "GNOME",
    "plasma": "KDE Plasma",
    "xfce": "Xfce",
    "cinnamon": "Cinnamon",
    "mate": "MATE",
    "lxqt": "LXQt",
    "budgie": "Budgie",
    "hyprland": "Hyprland",
    "i3": "i3",
}

AUDIO_BACKENDS = {
    "pipewire": "PipeWire",
    "pulseaudio": "PulseAudio",
    "": "None",
}

NETWORK_BACKENDS = {
    "networkmanager": "NetworkManager",
    "wpa_supplicant": "wpa_supplicant",
    "systemd-networkd": "systemd-networkd",
    "": "None",
}

LOCALES = [
    "en_US.UTF-8",
    "en_GB.UTF-8",
    "de_DE.UTF-8",
    "fr_FR.UTF-8",
    "es_ES.UTF-8",
    "it_IT.UTF-8",
    "nl_NL.UTF-8",
    "pt_BR.UTF-8",
    "pl_PL.UTF-8",
    "ru_RU.UTF-8",
    "sv_SE.UTF-8",
    "fi_FI.UTF-8",
    "ja_JP.UTF-8",
    "zh_CN.UTF-8",
]

# keyboard layout -> (xkb layout, console keymap)
KEYBOARD_LAYOUTS = {
    "us": ("us", "us"),
    "us(dvorak)": ("us", "dvorak"),
    "us(colemak)": ("us", "colemak"),
    "uk": ("gb", "uk"),
    "de": ("de", "de"),
    "fr": ("fr", "fr"),
    "es": ("es", "es"),
    "it": ("it", "it"),
    "ru": ("ru", "ru"),
    "br": ("br", "br-abnt2"),
    "nl": ("nl", "nl"),
    "se": ("se", "us"),
    "no": ("no", "no"),
    "fi": ("fi", "fi"),
    "dk": ("dk", "dk"),
    "pl": ("pl", "pl"),
    "tr": ("tr", "trq"),
    "jp": ("jp", "us"),
}

TIMEZONES = [
    "UTC",
    "Europe/London",
    "Europe/Berlin",
    "Europe/Paris",
    "Europe/Madrid",
    "Europe/Rome",
    "Europe/Amsterdam",
    "Europe/Stockholm",
    "Europe/Warsaw",
    "Europe/Moscow",
    "America/New_York",
    "America/Chicago",
    "America/Denver",
    "America/Los_Angeles",
    "America/Sao_Paulo",
    "Asia/Tokyo",
    "Asia/Shanghai",
    "Asia/Kolkata",
    "Australia/Sydney",
]

PACKAGE_CATALOGUE = {
    "vim": "Vi improved text editor",
    "neovim": "Vim-fork focused on extensibility",
    "nano": "Small friendly text editor",
    "emacs": "Extensible text editor",
    "git": "Distributed version control",
    "wget": "Non-interactive network downloader",
    "curl": "Transfer data with URLs",
    "htop": "Interactive process viewer",
    "btop": "Resource monitor",
    "tmux": "Terminal multiplexer",
    "firefox": "Web browser",
    "chromium": "Open-source web browser",
    "thunderbird": "Mail client",
    "vlc": "Media player",
    "mpv": "Minimal media player",
    "gimp": "Image editor",
    "libreoffice": "Office suite",
    "alacritty": "GPU-accelerated terminal",
    "kitty": "GPU-based terminal",
    "ripgrep": "Recursive line-oriented search",
    "fd": "Simple alternative to find",
    "fzf": "Command-line fuzzy finder",
    "unzip": "Extraction utility for .zip",
    "python3": "Python interpreter",
    "gcc": "GNU compiler collection",
    "gnumake": "GNU make",
    "docker": "Container runtime",
    "pciutils": "lspci and friends",
    "usbutils": "lsusb and friends",
}

WELCOME_TEXT = (
    "This wizard installs NixOS onto a disk of this machine.\n\n"
    "• You will choose a target disk and a partition layout\n"
    "• You will create user accounts and pick packages\n"
    "• The generated configuration is shown before anything is written\n\n"
    "Nothing is modified until you confirm on the review page."
)

IRREVERSIBLE_WARNING = (
    "Beginning the installation will erase all data on {device}. "
    "This cannot be undone."
)

PARTIAL_STATE_NOTICE = (
    "The target disk may have been partially modified. Do not assume it is "
    "empty or still holds its previous contents."
)

HELP_TEXT = {
    "default": "No help available for this page.",
    "welcome": "Enter: start the wizard\nq: quit without changes",
    "disks": "Up/Down: move\nEnter: use the highlighted disk\nr: rescan "
             "block devices\nEsc: back",
    "scheme": "Up/Down: choose a layout\nTab: switch between layout list and "
              "partition table\nEnter (table): change a partition size\n"
              "a: add a partition\ne (table): edit or delete a partition\n"
              "c: continue\nEsc: back",
    "new_partition": "Enter a size such as 20GiB, 25% (of the free space) or rest,\n"
                     "then pick a filesystem and a mount point.\n"
                     "Enter: next step\nEsc: previous step",
    "alter_partition": "Up/Down: choose an action\nEnter: apply it\nEsc: back",
    "filesystem": "Up/Down: move\nEnter: use the highlighted filesystem\n"
                  "Esc: back",
    "form": "Up/Down: move\nEnter: change the highlighted setting\n"
            "c: continue\nEsc: back",
    "users": "Enter: add or edit\nd: delete the highlighted user\n"
             "c: continue\nEsc: back",
    "user_edit": "Tab/Shift+Tab: move between fields\nSpace: toggle admin\n"
                 "Enter: save\nEsc: cancel",
    "packages": "/: search\nSpace: toggle package\nEnter (search): add a "
                "custom package\nc: continue\nEsc: back",
    "review": "1/2: switch preview\nPgUp/PgDn: scroll preview\n"
              "Left/Right: choose action\nEnter: run action",
    "install": "Installation cannot be interrupted once started.",
    "error": "q: quit\nEsc: go back (when the error is recoverable)",
}
