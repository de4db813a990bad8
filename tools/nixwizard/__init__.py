"""Terminal installer wizard for NixOS."""

__version__ = "0.1.0"
