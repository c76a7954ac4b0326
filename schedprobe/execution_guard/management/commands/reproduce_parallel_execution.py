"""
Burst the scheduler for the guard task in rounds until two runs overlap.

The default beat dispatch runs one DatabaseScheduler tick per worker at the
same time for an enabled guard PeriodicTask (see create_guard_task). A
dispatcher that never starts a second run of a task while the first is
still going sends at most one run per round; any failed guard run means it
did. After each round the run history is checked for guard runs still
marked as started or ended by an error.

--dispatch broker sends the task straight to the workers and --dispatch
eager runs the guard in-process; both bypass the scheduler and only
exercise the guard itself.
"""
import os
import sys

from django.core.management.base import BaseCommand

from execution_guard.reproduction import BurstRunner
from execution_guard.services.dispatch import (
    beat_dispatch,
    broker_dispatch,
    eager_dispatch,
    find_guard_task,
    find_unfinished_runs,
)

DISPATCH_BEAT = "beat"
DISPATCH_BROKER = "broker"
DISPATCH_EAGER = "eager"


class Command(BaseCommand):
    help = (
        "Tick the scheduler for the single execution guard task in "
        "concurrent bursts and stop at the first round in which runs "
        "overlapped."
    )

    def add_arguments(self, parser):
        parser.add_argument(
            "--dispatch",
            choices=[DISPATCH_BEAT, DISPATCH_BROKER, DISPATCH_EAGER],
            default=DISPATCH_BEAT,
            help="How each run is triggered (default: %(default)s)",
        )
        parser.add_argument(
            "--task",
            type=int,
            default=None,
            help=(
                "Uid of the guard PeriodicTask to tick (default: the most "
                "recently created one)"
            ),
        )
        parser.add_argument(
            "--workers",
            type=int,
            default=os.cpu_count() or 1,
            help="Concurrent runs per round (default: CPU count)",
        )
        parser.add_argument(
            "--rounds",
            type=int,
            default=None,
            help="Stop after this many clean rounds (default: never)",
        )
        parser.add_argument(
            "--queue",
            default=None,
            help="Queue to send the runs to (broker dispatch)",
        )
        parser.add_argument(
            "--timeout",
            type=float,
            default=60,
            help="Seconds to wait for each run's result",
        )

    def _fail(self, message):
        self.stderr.write(message)
        sys.exit(1)

    def handle(self, *args, **options):
        mode = options["dispatch"]
        inspect = find_unfinished_runs
        if mode == DISPATCH_BEAT:
            periodic_task = find_guard_task(options["task"])
            if periodic_task is None:
                self._fail(
                    "No enabled single execution guard task found; "
                    "run create_guard_task first."
                )
            dispatch = beat_dispatch(
                periodic_task.name, timeout=options["timeout"]
            )
        elif mode == DISPATCH_BROKER:
            dispatch = broker_dispatch(
                queue=options["queue"], timeout=options["timeout"]
            )
        else:
            # In-process runs leave no run history behind.
            dispatch = eager_dispatch()
            inspect = None

        runner = BurstRunner(
            dispatch,
            workers=options["workers"],
            report=self.stdout.write,
            inspect=inspect,
        )
        report = runner.run(rounds=options["rounds"])
        if report is None:
            return

        for finding in report.findings:
            self.stderr.write(finding)
        for result in report.results:
            if result.error:
                self.stderr.write(f"Run raised: {result.error}")
        if report.overlapping:
            self.stderr.write(
                f"Found overlapping execution in round {report.round_number}"
            )
        self._fail(f"Round {report.round_number} was not clean")
