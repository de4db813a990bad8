"""QThread worker for the installation and the channel feeding the UI."""

import logging
import queue
from dataclasses import dataclass
from typing import Callable

from PySide6.QtCore import QThread, Qt, Signal

from .backend import CommandRunner, InstallError, PreflightError
from .pipeline import Orchestrator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StepUpdate:
    index: int
    status: str


@dataclass(frozen=True)
class LogUpdate:
    index: int  # -1 when no step is running
    line: str


@dataclass(frozen=True)
class Finished:
    success: bool
    error: str = ""
    recoverable: bool = False  # nothing on the disk was changed


Update = StepUpdate | LogUpdate | Finished


class InstallWorker(QThread):
    """Runs the entire installation sequence."""

    step_changed = Signal(int, str)  # (step index, status)
    log_line = Signal(int, str)  # (step index, line)
    completed = Signal(bool, str, bool)  # (success, error_message, recoverable)

    def __init__(
        self,
        orchestrator: Orchestrator,
        runner_factory: Callable[[Callable[[str], None]], CommandRunner] = CommandRunner,
    ):
        super().__init__()
        self.orchestrator = orchestrator
        self._runner_factory = runner_factory

    def run(self):
        try:
            runner = self._runner_factory(self.orchestrator.log)
        except OSError as e:
            self.completed.emit(False, f"Cannot open install log: {e}", True)
            return
        try:
            self.orchestrator.run(
                runner,
                on_step=self.step_changed.emit,
                on_log=self.log_line.emit,
            )
            self.completed.emit(True, "", False)
        except PreflightError as e:
            self.log_line.emit(-1, f"PRE-FLIGHT: {e}")
            self.completed.emit(False, str(e), e.recoverable)
        except InstallError as e:
            self.log_line.emit(-1, f"ERROR: {e}")
            self.completed.emit(False, f"{e.step}: {e}" if e.step else str(e), e.recoverable)
        except Exception as e:
            logger.exception("Unexpected error during installation")
            self.log_line.emit(-1, f"UNEXPECTED ERROR: {e}")
            self.completed.emit(False, f"Unexpected error: {e}", False)
        finally:
            runner.close()


class UpdateChannel:
    """Ordered single-producer single-consumer channel of worker updates.

    The worker's signals are connected directly, so updates are queued from
    the worker thread without needing a Qt event loop in the foreground.
    """

    def __init__(self):
        self._queue: queue.SimpleQueue[Update] = queue.SimpleQueue()

    def connect(self, worker: InstallWorker) -> None:
        direct = Qt.ConnectionType.DirectConnection
        worker.step_changed.connect(self._on_step, type=direct)
        worker.log_line.connect(self._on_log, type=direct)
        worker.completed.connect(self._on_completed, type=direct)

    def put(self, update: Update) -> None:
        self._queue.put(update)

    def _on_step(self, index: int, status: str) -> None:
        self.put(StepUpdate(index, status))

    def _on_log(self, index: int, line: str) -> None:
        self.put(LogUpdate(index, line))

    def _on_completed(self, success: bool, error: str, recoverable: bool) -> None:
        self.put(Finished(success, error, recoverable))

    def drain(self) -> list[Update]:
        """Everything queued so far, oldest first, without blocking."""
        updates: list[Update] = []
        while True:
            try:
                updates.append(self._queue.get_nowait())
            except queue.Empty:
                return updates
