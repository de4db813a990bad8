"""Ordered installation pipeline with pre-flight validation."""

import json
import logging
import subprocess
from dataclasses import dataclass, field
from enum import Enum
from functools import partial
from typing import Callable

from .backend import (
    CommandRunner,
    InstallError,
    PreflightError,
    final_cleanup,
    format_partitions,
    install_system,
    mount_filesystems,
    partition_disk,
    write_configuration,
)
from .disks import Disk, find_disk, plan_fits
from .resources import MOUNTPOINT
from .state import InstallerState

logger = logging.getLogger(__name__)


class StepStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    NOT_STARTED = "not started"


@dataclass
class PipelineStep:
    name: str
    action: Callable[[CommandRunner], None]
    status: StepStatus = StepStatus.PENDING
    log: list[str] = field(default_factory=list)
    error: str = ""


def build_pipeline(state: InstallerState, mountpoint: str = MOUNTPOINT) -> list[PipelineStep]:
    """The installation steps for ``state``, in execution order."""
    return [
        PipelineStep("Partition disk", partial(partition_disk, state=state)),
        PipelineStep("Create filesystems", partial(format_partitions, state=state)),
        PipelineStep("Mount filesystems",
                     partial(mount_filesystems, state=state, mountpoint=mountpoint)),
        PipelineStep("Write configuration",
                     partial(write_configuration, state=state, mountpoint=mountpoint)),
        PipelineStep("Install system",
                     partial(install_system, state=state, mountpoint=mountpoint)),
        PipelineStep("Finalize", partial(final_cleanup, state=state, mountpoint=mountpoint)),
    ]


def preflight(state: InstallerState, lookup: Callable[[str], Disk | None] = find_disk) -> None:
    """Re-validate the whole configuration right before anything destructive.

    Raises PreflightError listing every problem found.
    """
    problems = [f"Missing {name}" for name in state.missing_fields()]
    problems += state.problems()

    if state.target_device:
        try:
            disk = lookup(state.target_device)
        except (OSError, subprocess.CalledProcessError, json.JSONDecodeError) as e:
            problems.append(f"Cannot look up {state.target_device}: {e}")
        else:
            if disk is None:
                problems.append(f"{state.target_device} is no longer present")
            else:
                if disk.size != state.target_device_size:
                    problems.append(
                        f"{state.target_device} changed size since it was selected"
                    )
                if state.partitions and not plan_fits(state.partitions, disk.size):
                    problems.append(f"The partition plan no longer fits {disk.path}")
                if disk.mounted:
                    problems.append(
                        f"{disk.path} has mounted partitions: {', '.join(disk.mounted)}"
                    )

    if problems:
        logger.warning("Pre-flight rejected configuration: %s", "; ".join(problems))
        raise PreflightError(problems)
    logger.info("Pre-flight passed for %s", state.target_device)


class Orchestrator:
    """Runs pipeline steps strictly in order, halting on the first failure.

    Nothing is rolled back: partitioning and formatting cannot be safely
    reverted, so a failed run leaves the disk as the last command left it.
    """

    def __init__(
        self,
        state: InstallerState,
        steps: list[PipelineStep] | None = None,
        lookup: Callable[[str], Disk | None] = find_disk,
        mountpoint: str = MOUNTPOINT,
    ):
        self.state = state
        self.steps = steps if steps is not None else build_pipeline(state, mountpoint)
        self.lookup = lookup
        self._current: int | None = None
        self._on_log: Callable[[int, str], None] | None = None

    @property
    def failed_step(self) -> PipelineStep | None:
        return next((s for s in self.steps if s.status is StepStatus.FAILED), None)

    def preflight(self) -> None:
        preflight(self.state, self.lookup)

    def log(self, line: str) -> None:
        """Attribute a line of command output to the running step."""
        index = -1 if self._current is None else self._current
        if index >= 0:
            self.steps[index].log.append(line)
        if self._on_log is not None:
            self._on_log(index, line)

    def _set_status(self, index: int, status: StepStatus,
                    on_step: Callable[[int, str], None] | None) -> None:
        self.steps[index].status = status
        if on_step is not None:
            on_step(index, status.value)

    def run(
        self,
        runner: CommandRunner,
        on_step: Callable[[int, str], None] | None = None,
        on_log: Callable[[int, str], None] | None = None,
    ) -> None:
        """Validate, then execute every step.

        Raises PreflightError before any step is touched, or the failing
        step's exception after marking the remaining steps not started.
        """
        self._on_log = on_log
        self.preflight()
        for index, step in enumerate(self.steps):
            self._current = index
            self._set_status(index, StepStatus.RUNNING, on_step)
            logger.info("Running step %s", step.name)
            try:
                step.action(runner)
            except Exception as e:
                step.error = str(e)
                self._set_status(index, StepStatus.FAILED, on_step)
                for later in range(index + 1, len(self.steps)):
                    self._set_status(later, StepStatus.NOT_STARTED, on_step)
                logger.error("Step %s failed: %s", step.name, e)
                if isinstance(e, InstallError) and not e.step:
                    e.step = step.name
                raise
            finally:
                self._current = None
            self._set_status(index, StepStatus.SUCCEEDED, on_step)
        logger.info("Pipeline finished: %d step(s) succeeded", len(self.steps))
