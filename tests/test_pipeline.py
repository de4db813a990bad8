"""Tests for nixwizard/pipeline.py

Pre-flight validation must stop everything before the first step, and a
failing step must halt the run with later steps marked not started.
"""

import subprocess
from dataclasses import replace

import pytest

from conftest import apply_scheme
from nixwizard.backend import CommandError, InstallError, PreflightError
from nixwizard.pipeline import (
    Orchestrator,
    PipelineStep,
    StepStatus,
    build_pipeline,
    preflight,
)


def make_steps(calls: list[str], fail_at: int | None = None, count: int = 4) -> list[PipelineStep]:
    def action(index, runner):
        calls.append(f"step{index}")
        if index == fail_at:
            raise CommandError(["false"], 1)

    return [
        PipelineStep(f"step{i}", lambda runner, i=i: action(i, runner))
        for i in range(1, count + 1)
    ]


# ─────────────────────────────────────────────────────────────────────────────
# Pre-flight Tests
# ─────────────────────────────────────────────────────────────────────────────


class TestPreflight:
    """Tests for the pre-flight re-validation."""

    def test_passes_for_valid_state(self, populated_state, sample_disk):
        """A complete state on a present disk should pass."""
        preflight(populated_state, lookup=lambda path: sample_disk)

    def test_reports_missing_fields(self, populated_state, sample_disk):
        """Missing users should be reported."""
        populated_state.users = []
        with pytest.raises(PreflightError) as exc:
            preflight(populated_state, lookup=lambda path: sample_disk)
        assert "Missing user account" in exc.value.problems
        assert exc.value.recoverable

    def test_device_vanished(self, populated_state):
        """A disk that disappeared should fail pre-flight."""
        with pytest.raises(PreflightError, match="no longer present"):
            preflight(populated_state, lookup=lambda path: None)

    def test_device_resized(self, populated_state, sample_disk):
        """A disk whose size changed should fail pre-flight."""
        shrunk = replace(sample_disk, size=sample_disk.size // 16)
        with pytest.raises(PreflightError) as exc:
            preflight(populated_state, lookup=lambda path: shrunk)
        assert any("changed size" in p for p in exc.value.problems)
        assert any("no longer fits" in p for p in exc.value.problems)

    def test_device_mounted(self, populated_state, nvme_disk):
        """Mounted partitions on the target should fail pre-flight."""
        nvme_disk.partitions[0].mountpoint = "/mnt/data"
        populated_state.select_device(nvme_disk)
        apply_scheme(populated_state, "basic")
        with pytest.raises(PreflightError, match="mounted partitions"):
            preflight(populated_state, lookup=lambda path: nvme_disk)

    def test_lookup_failure(self, populated_state):
        """A failing disk lookup should be reported, not raised."""
        def lookup(path):
            raise subprocess.CalledProcessError(1, ["lsblk"])

        with pytest.raises(PreflightError, match="Cannot look up"):
            preflight(populated_state, lookup=lookup)

    def test_rejects_oversized_plan(self, populated_state, sample_disk):
        """A plan larger than the disk should fail."""
        populated_state.partitions[1].size = sample_disk.size
        with pytest.raises(PreflightError, match="exceed"):
            preflight(populated_state, lookup=lambda path: sample_disk)


# ─────────────────────────────────────────────────────────────────────────────
# Orchestrator Tests
# ─────────────────────────────────────────────────────────────────────────────


class TestOrchestrator:
    """Tests for ordered step execution."""

    def test_preflight_failure_runs_nothing(self, populated_state, runner):
        """No step should run when pre-flight fails."""
        calls: list[str] = []
        populated_state.target_device = ""
        orchestrator = Orchestrator(populated_state, make_steps(calls),
                                    lookup=lambda path: None)
        with pytest.raises(PreflightError):
            orchestrator.run(runner)
        assert calls == []
        assert runner.commands == []
        assert all(s.status is StepStatus.PENDING for s in orchestrator.steps)

    def test_runs_steps_in_order(self, populated_state, sample_disk, runner):
        """Every step should run once, in order, and succeed."""
        calls: list[str] = []
        updates: list[tuple[int, str]] = []
        orchestrator = Orchestrator(populated_state, make_steps(calls),
                                    lookup=lambda path: sample_disk)
        orchestrator.run(runner, on_step=lambda i, s: updates.append((i, s)))
        assert calls == ["step1", "step2", "step3", "step4"]
        assert updates == [
            (0, "running"), (0, "succeeded"),
            (1, "running"), (1, "succeeded"),
            (2, "running"), (2, "succeeded"),
            (3, "running"), (3, "succeeded"),
        ]

    def test_failure_halts_pipeline(self, populated_state, sample_disk, runner):
        """When step 2 fails, steps 3 and 4 should never start."""
        calls: list[str] = []
        orchestrator = Orchestrator(populated_state, make_steps(calls, fail_at=2),
                                    lookup=lambda path: sample_disk)
        with pytest.raises(CommandError) as exc:
            orchestrator.run(runner)
        assert calls == ["step1", "step2"]
        assert [s.status for s in orchestrator.steps] == [
            StepStatus.SUCCEEDED,
            StepStatus.FAILED,
            StepStatus.NOT_STARTED,
            StepStatus.NOT_STARTED,
        ]
        assert exc.value.step == "step2"
        assert orchestrator.failed_step.name == "step2"
        assert "exit 1" in orchestrator.failed_step.error

    def test_log_lines_go_to_running_step(self, populated_state, sample_disk, runner):
        """Output should be attributed to the step that produced it."""
        seen: list[tuple[int, str]] = []
        orchestrator = Orchestrator(populated_state, [], lookup=lambda path: sample_disk)
        orchestrator.steps = [
            PipelineStep("first", lambda r: orchestrator.log("one")),
            PipelineStep("second", lambda r: orchestrator.log("two")),
        ]
        orchestrator.log("before")
        orchestrator.run(runner, on_log=lambda i, line: seen.append((i, line)))
        assert orchestrator.steps[0].log == ["one"]
        assert orchestrator.steps[1].log == ["two"]
        assert seen == [(0, "one"), (1, "two")]

    def test_unexpected_exception_marks_failure(self, populated_state, sample_disk, runner):
        """Non-install errors should also halt and propagate."""
        def boom(r):
            raise RuntimeError("boom")

        orchestrator = Orchestrator(
            populated_state,
            [PipelineStep("a", boom), PipelineStep("b", lambda r: None)],
            lookup=lambda path: sample_disk,
        )
        with pytest.raises(RuntimeError):
            orchestrator.run(runner)
        assert orchestrator.steps[1].status is StepStatus.NOT_STARTED


# ─────────────────────────────────────────────────────────────────────────────
# Full Pipeline Tests
# ─────────────────────────────────────────────────────────────────────────────


class TestBuildPipeline:
    """Tests for the real installation sequence against a recording runner."""

    def test_step_names(self, populated_state):
        """The pipeline should have the documented steps in order."""
        names = [s.name for s in build_pipeline(populated_state)]
        assert names == [
            "Partition disk",
            "Create filesystems",
            "Mount filesystems",
            "Write configuration",
            "Install system",
            "Finalize",
        ]

    def test_full_run(self, populated_state, sample_disk, runner):
        """A full run should partition before installing and write configs."""
        orchestrator = Orchestrator(populated_state, lookup=lambda path: sample_disk,
                                    mountpoint="/mnt")
        orchestrator.run(runner)
        programs = [cmd[0] for cmd in runner.commands]
        assert programs[0] == "wipefs"
        assert programs.index("mkfs.ext4") < programs.index("mount")
        assert programs.index("nixos-generate-config") < programs.index("nixos-install")
        assert "/mnt/etc/nixos/configuration.nix" in runner.files
        assert "/mnt/etc/nixos/disko-layout.nix" in runner.files
        assert 'hostName = "testbox"' in runner.files["/mnt/etc/nixos/configuration.nix"]

    def test_failure_in_install_step(self, populated_state, sample_disk):
        """A failing nixos-install should stop before Finalize."""
        from conftest import RecordingRunner

        runner = RecordingRunner(fail_on="nixos-install")
        orchestrator = Orchestrator(populated_state, lookup=lambda path: sample_disk)
        with pytest.raises(InstallError) as exc:
            orchestrator.run(runner)
        assert exc.value.step == "Install system"
        assert orchestrator.steps[-1].status is StepStatus.NOT_STARTED
        assert ["sync"] not in runner.commands
