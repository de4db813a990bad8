"""Debug log setup. The terminal belongs to the UI, so logs go to a file."""

import logging
import os
import tempfile
from pathlib import Path

from .resources import DEBUG_LOG_PATH

_HANDLER_ATTR = "_nixwizard_handler"


def configure_logging(log_path: str = DEBUG_LOG_PATH, level: int = logging.INFO) -> str:
    """Send all records to ``log_path`` and return the path actually used.

    When ``log_path`` is not writable the log goes to the temp directory.
    Calling this again replaces the previous handler.
    """
    root = logging.getLogger()
    root.setLevel(level)

    previous = getattr(root, _HANDLER_ATTR, None)
    if previous is not None:
        root.removeHandler(previous)
        previous.close()

    fmt = logging.Formatter(
        fmt="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S%z",
    )

    chosen_path = log_path
    try:
        Path(os.path.dirname(log_path) or ".").mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(log_path)
    except OSError:
        chosen_path = str(Path(tempfile.gettempdir()) / "nixwizard-debug.log")
        handler = logging.FileHandler(chosen_path)
    handler.setFormatter(fmt)
    root.addHandler(handler)
    setattr(root, _HANDLER_ATTR, handler)

    logging.getLogger(__name__).info(
        "Logging initialized (requested=%s, actual=%s)", log_path, chosen_path
    )
    return chosen_path
