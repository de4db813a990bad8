"""NixOS installer: application entry point."""

import argparse
import logging
import os
import sys

from . import __version__
from .logging_utils import configure_logging
from .pages import WelcomePage
from .resources import DEBUG_LOG_PATH, INSTALL_LOG_PATH, MOUNTPOINT
from .state import InstallerState
from .terminal import has_terminal
from .wizard import Wizard

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="nixwizard",
        description="Interactive terminal installer for NixOS.",
    )
    parser.add_argument("--dry-run", action="store_true",
                        help="log every command instead of running it")
    parser.add_argument("--log-file", default=DEBUG_LOG_PATH,
                        help=f"debug log location (default: {DEBUG_LOG_PATH})")
    parser.add_argument("--install-log", default=INSTALL_LOG_PATH,
                        help=f"command output log (default: {INSTALL_LOG_PATH})")
    parser.add_argument("--mountpoint", default=MOUNTPOINT,
                        help=f"where the target is mounted (default: {MOUNTPOINT})")
    parser.add_argument("--debug", action="store_true", help="verbose debug log")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    log_path = configure_logging(args.log_file, logging.DEBUG if args.debug else logging.INFO)

    if not args.dry_run and os.geteuid() != 0:
        print("nixwizard must run as root (or use --dry-run).", file=sys.stderr)
        return 1

    state = InstallerState(
        mountpoint=args.mountpoint,
        install_log=args.install_log,
        dry_run=args.dry_run,
    )
    logger.info("nixwizard %s starting (dry_run=%s)", __version__, args.dry_run)

    if not has_terminal():
        print("nixwizard: an interactive terminal is required.", file=sys.stderr)
        return 1

    try:
        exit_code = Wizard(state, WelcomePage()).run()
    except Exception:
        logger.exception("Installer crashed")
        print(f"nixwizard crashed; see {log_path}", file=sys.stderr)
        return 1
    return exit_code
