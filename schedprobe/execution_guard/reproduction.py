"""
Burst runner for reproducing parallel guard executions.

Each round fires one dispatch per worker at the same time and waits for
all of them. A dispatch either runs the guard task (ok / failed), is turned
down by the scheduler because the task is not due (skipped), or raises
(error). A round with a failed run means two runs overlapped on the
marker; the runner stops there so the state can be inspected.
"""
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Optional

logger = logging.getLogger(__name__)

STATUS_OK = "ok"
STATUS_FAILED = "failed"
STATUS_SKIPPED = "skipped"
STATUS_ERROR = "error"


@dataclass(frozen=True)
class InvocationResult:
    elapsed_ms: int
    status: str
    error: Optional[str] = None

    @property
    def ok(self):
        """True unless the run failed its guard check or raised."""
        return self.status in (STATUS_OK, STATUS_SKIPPED)


@dataclass
class RoundReport:
    round_number: int
    results: List[InvocationResult] = field(default_factory=list)
    started_at: Optional[datetime] = None
    # Problems found in the run history after the round
    findings: List[str] = field(default_factory=list)

    def _count(self, status):
        return sum(1 for result in self.results if result.status == status)

    @property
    def overlapping(self) -> int:
        """Number of runs that did not get the guard to themselves."""
        return self._count(STATUS_FAILED)

    @property
    def errors(self) -> int:
        return self._count(STATUS_ERROR)

    @property
    def clean(self) -> bool:
        return not (self.overlapping or self.errors or self.findings)


def _timed(dispatch: Callable[[], Optional[bool]]) -> InvocationResult:
    start = time.monotonic()
    error = None
    try:
        outcome = dispatch()
    except Exception as exc:
        logger.exception(f"Guard dispatch raised: {exc}")
        outcome = None
        error = f"{type(exc).__name__}: {exc}"
    elapsed_ms = int((time.monotonic() - start) * 1000)

    if error is not None:
        status = STATUS_ERROR
    elif outcome is None:
        status = STATUS_SKIPPED
    elif outcome:
        status = STATUS_OK
    else:
        status = STATUS_FAILED
    return InvocationResult(elapsed_ms=elapsed_ms, status=status, error=error)


def _describe(result: InvocationResult) -> str:
    line = (
        f"\tinvocation complete with status {result.status} "
        f"after {result.elapsed_ms} ms"
    )
    if result.error:
        line = f"{line}: {result.error}"
    return line


class BurstRunner:
    """
    Fire `workers` concurrent dispatches per round.

    Args:
        dispatch: Runs one invocation. Returns the guard outcome, or None
            when the scheduler did not start a run.
        workers: Concurrent dispatches per round.
        report: Receives one line of progress text at a time.
        inspect: Called with the round's start time once all dispatches
            returned; yields findings that make the round unclean.
    """

    def __init__(
        self,
        dispatch: Callable[[], Optional[bool]],
        workers: int,
        report: Optional[Callable[[str], None]] = None,
        inspect: Optional[Callable[[datetime], Iterable[str]]] = None,
    ):
        if workers < 1:
            raise ValueError("workers must be at least 1")
        self.dispatch = dispatch
        self.workers = workers
        self.report = report or logger.info
        self.inspect = inspect

    def run_round(self, round_number: int) -> RoundReport:
        started_at = datetime.now(timezone.utc)
        with ThreadPoolExecutor(
            max_workers=self.workers,
            thread_name_prefix="guard-burst",
        ) as executor:
            futures = [
                executor.submit(_timed, self.dispatch)
                for _ in range(self.workers)
            ]
            results = [future.result() for future in futures]

        report = RoundReport(
            round_number=round_number,
            results=results,
            started_at=started_at,
        )
        if self.inspect is not None:
            report.findings = list(self.inspect(started_at))
        return report

    def run(self, rounds: Optional[int] = None) -> Optional[RoundReport]:
        """
        Run rounds until one is not clean.

        Args:
            rounds: Number of rounds; None runs until a round is unclean.

        Returns:
            The first unclean round, or None if every round was clean.
        """
        round_number = 1
        while rounds is None or round_number <= rounds:
            self.report(f"starting round {round_number}")
            report = self.run_round(round_number)
            for result in report.results:
                self.report(_describe(result))
            if not report.clean:
                logger.warning(
                    f"Round {round_number}: {report.overlapping} failed, "
                    f"{report.errors} raised, {len(report.findings)} "
                    f"history finding(s) out of {len(report.results)} runs"
                )
                return report
            round_number += 1
        return None
