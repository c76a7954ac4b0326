"""
Tests for the burst runner and the reproduce_parallel_execution command.
"""
import itertools
import threading
from datetime import timedelta
from io import StringIO
from unittest.mock import MagicMock, patch

import pytest
from celery.exceptions import TimeoutError as CeleryTimeoutError
from django.core.management import call_command
from django.utils import timezone
from django_celery_beat.models import PeriodicTask

from execution_guard.reproduction import (
    STATUS_ERROR,
    STATUS_FAILED,
    STATUS_OK,
    STATUS_SKIPPED,
    BurstRunner,
    InvocationResult,
    RoundReport,
)
from execution_guard.scheduler_task import SingleExecutionGuardTask
from execution_guard.services.dispatch import broker_dispatch
from execution_guard.services.guard import ExecutionGuard

COMMAND_MODULE = (
    "execution_guard.management.commands.reproduce_parallel_execution"
)
DISPATCH_MODULE = "execution_guard.services.dispatch"


@pytest.mark.unit
class TestRoundReport:
    def test_counts_failed_runs_as_overlapping(self):
        report = RoundReport(
            round_number=3,
            results=[
                InvocationResult(elapsed_ms=801, status=STATUS_OK),
                InvocationResult(elapsed_ms=2, status=STATUS_FAILED),
            ],
        )

        assert report.overlapping == 1
        assert report.errors == 0
        assert report.clean is False

    def test_skipped_runs_are_clean(self):
        report = RoundReport(
            round_number=1,
            results=[
                InvocationResult(elapsed_ms=801, status=STATUS_OK),
                InvocationResult(elapsed_ms=3, status=STATUS_SKIPPED),
            ],
        )

        assert report.clean is True

    def test_errors_and_findings_make_round_unclean(self):
        errored = RoundReport(
            round_number=1,
            results=[
                InvocationResult(
                    elapsed_ms=5, status=STATUS_ERROR, error="boom"
                ),
            ],
        )
        with_findings = RoundReport(
            round_number=1, findings=["Found task that is still being "
                                      "executed: abc"],
        )

        assert errored.errors == 1
        assert errored.clean is False
        assert with_findings.clean is False

    def test_empty_round_is_clean(self):
        assert RoundReport(round_number=1).clean is True


@pytest.mark.unit
class TestBurstRunner:
    def test_rejects_zero_workers(self):
        with pytest.raises(ValueError):
            BurstRunner(lambda: True, workers=0)

    def test_runs_one_dispatch_per_worker_per_round(self):
        lines = []
        dispatch = MagicMock(return_value=True)
        runner = BurstRunner(dispatch, workers=3, report=lines.append)

        assert runner.run(rounds=2) is None

        assert dispatch.call_count == 6
        assert lines.count("starting round 1") == 1
        assert lines.count("starting round 2") == 1
        completions = [line for line in lines if "invocation complete" in line]
        assert len(completions) == 6
        assert all("with status ok" in line for line in completions)

    def test_dispatch_returning_none_is_skipped(self):
        lines = []
        runner = BurstRunner(lambda: None, workers=2, report=lines.append)

        assert runner.run(rounds=1) is None
        assert sum("with status skipped" in line for line in lines) == 2

    def test_dispatches_of_a_round_run_concurrently(self):
        barrier = threading.Barrier(4, timeout=5)

        def dispatch():
            # Breaks (and raises) unless all four are waiting together.
            barrier.wait()
            return True

        report = BurstRunner(dispatch, workers=4).run_round(1)

        assert report.clean
        assert len(report.results) == 4

    def test_stops_at_first_round_with_overlap(self):
        outcomes = itertools.chain([True, True], [True, False])
        lock = threading.Lock()

        def dispatch():
            with lock:
                return next(outcomes)

        lines = []
        runner = BurstRunner(dispatch, workers=2, report=lines.append)

        report = runner.run(rounds=5)

        assert report.round_number == 2
        assert report.overlapping == 1
        assert "starting round 3" not in lines
        assert any("with status failed" in line for line in lines)

    def test_raising_dispatch_is_recorded_not_propagated(self):
        calls = itertools.count()
        lock = threading.Lock()

        def dispatch():
            with lock:
                first = next(calls) == 0
            if first:
                raise CeleryTimeoutError("The operation timed out.")
            return True

        lines = []
        runner = BurstRunner(dispatch, workers=2, report=lines.append)

        report = runner.run(rounds=3)

        assert report.round_number == 1
        assert report.errors == 1
        assert report.overlapping == 0
        assert report.clean is False
        errored = [r for r in report.results if r.status == STATUS_ERROR]
        assert errored[0].error == "TimeoutError: The operation timed out."
        assert any(
            "with status error" in line and "timed out" in line
            for line in lines
        )

    def test_inspect_receives_round_start_and_adds_findings(self):
        seen = []

        def inspect(since):
            seen.append(since)
            return ["Found task that is still being executed: abc"]

        report = BurstRunner(
            lambda: True, workers=1, inspect=inspect
        ).run(rounds=2)

        assert report.round_number == 1
        assert report.findings == [
            "Found task that is still being executed: abc"
        ]
        assert seen == [report.started_at]
        assert timezone.is_aware(report.started_at)

    def test_real_guard_burst_detects_overlap(self, guard_root):
        def dispatch():
            return SingleExecutionGuardTask(
                ExecutionGuard(guard_root, hold_seconds=0.3)
            ).execute()

        report = BurstRunner(dispatch, workers=3).run(rounds=1)

        assert report is not None
        assert report.overlapping >= 1
        assert sum(1 for r in report.results if r.ok) <= 1
        assert not (guard_root / "single-execution-guard").exists()

    def test_raising_guard_task_makes_round_unclean(self, guard_root):
        with patch(
            "execution_guard.tasks.ExecutionGuard.from_settings",
            side_effect=RuntimeError("guard root missing"),
        ):
            report = BurstRunner(broker_dispatch(), workers=1).run(rounds=1)

        assert report is not None
        assert report.results[0].status == STATUS_FAILED


@pytest.mark.unit
class TestReproduceParallelExecutionCommand:
    def test_single_worker_eager_rounds_are_clean(self, guard_root):
        stdout, stderr = StringIO(), StringIO()

        call_command(
            "reproduce_parallel_execution",
            "--dispatch", "eager", "--workers", "1", "--rounds", "2",
            stdout=stdout, stderr=stderr,
        )

        assert "starting round 1" in stdout.getvalue()
        assert "starting round 2" in stdout.getvalue()
        assert stderr.getvalue() == ""

    def test_concurrent_eager_runs_report_overlap(self, guard_root, settings):
        settings.EXECUTION_GUARD_HOLD_SECONDS = 0.3
        stdout, stderr = StringIO(), StringIO()

        with pytest.raises(SystemExit) as excinfo:
            call_command(
                "reproduce_parallel_execution",
                "--dispatch", "eager", "--workers", "3", "--rounds", "3",
                stdout=stdout, stderr=stderr,
            )

        assert excinfo.value.code == 1
        assert "Found overlapping execution in round 1" in stderr.getvalue()
        assert "starting round 2" not in stdout.getvalue()

    def test_broker_dispatch_uses_queue_and_timeout(self, guard_root):
        async_result = MagicMock()
        async_result.get.return_value = True
        async_result.successful.return_value = True

        with patch(f"{DISPATCH_MODULE}.run_single_execution_guard") as task, \
                patch(f"{COMMAND_MODULE}.find_unfinished_runs",
                      return_value=[]):
            task.apply_async.return_value = async_result
            call_command(
                "reproduce_parallel_execution",
                "--dispatch", "broker", "--workers", "1", "--rounds", "1",
                "--queue", "guard", "--timeout", "5",
                stdout=StringIO(), stderr=StringIO(),
            )

        task.apply_async.assert_called_once_with(queue="guard")
        async_result.get.assert_called_once_with(timeout=5.0, propagate=False)

    def test_result_timeout_exits_with_failure(self, guard_root):
        async_result = MagicMock()
        async_result.get.side_effect = CeleryTimeoutError(
            "The operation timed out."
        )
        stdout, stderr = StringIO(), StringIO()

        with patch(f"{DISPATCH_MODULE}.run_single_execution_guard") as task, \
                patch(f"{COMMAND_MODULE}.find_unfinished_runs",
                      return_value=[]):
            task.apply_async.return_value = async_result
            with pytest.raises(SystemExit) as excinfo:
                call_command(
                    "reproduce_parallel_execution",
                    "--dispatch", "broker", "--workers", "1",
                    "--rounds", "2",
                    stdout=stdout, stderr=stderr,
                )

        assert excinfo.value.code == 1
        assert "with status error" in stdout.getvalue()
        assert "Run raised: TimeoutError: The operation timed out." in (
            stderr.getvalue()
        )
        assert "Round 1 was not clean" in stderr.getvalue()

    def test_history_findings_are_reported(self, guard_root):
        finding = "Found task that is still being executed: 1f2e"
        stdout, stderr = StringIO(), StringIO()

        with patch(f"{COMMAND_MODULE}.broker_dispatch",
                   return_value=lambda: True), \
                patch(f"{COMMAND_MODULE}.find_unfinished_runs",
                      return_value=[finding]):
            with pytest.raises(SystemExit) as excinfo:
                call_command(
                    "reproduce_parallel_execution",
                    "--dispatch", "broker", "--workers", "2",
                    "--rounds", "1",
                    stdout=stdout, stderr=stderr,
                )

        assert excinfo.value.code == 1
        assert finding in stderr.getvalue()
        assert "Found overlapping execution" not in stderr.getvalue()


@pytest.mark.django_db(transaction=True)
class TestReproduceWithBeatDispatch:
    def test_missing_guard_task_exits_with_failure(self, guard_root):
        stderr = StringIO()

        with pytest.raises(SystemExit) as excinfo:
            call_command(
                "reproduce_parallel_execution", "--rounds", "1",
                stdout=StringIO(), stderr=stderr,
            )

        assert excinfo.value.code == 1
        assert "run create_guard_task first" in stderr.getvalue()

    def test_ticks_run_due_task_then_skip_it(self, guard_root):
        uid = StringIO()
        call_command("create_guard_task", stdout=uid, stderr=StringIO())
        PeriodicTask.objects.filter(pk=int(uid.getvalue())).update(
            last_run_at=timezone.now() - timedelta(hours=1)
        )
        stdout, stderr = StringIO(), StringIO()

        call_command(
            "reproduce_parallel_execution",
            "--task", uid.getvalue().strip(), "--workers", "1",
            "--rounds", "2",
            stdout=stdout, stderr=stderr,
        )

        output = stdout.getvalue()
        assert "with status ok" in output
        assert "with status skipped" in output
        assert stderr.getvalue() == ""
        task = PeriodicTask.objects.get(pk=int(uid.getvalue()))
        assert task.total_run_count == 1
