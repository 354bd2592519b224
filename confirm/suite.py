"""
Booking Lifecycle — Regression Run

Collects checks under a test name, executes them, and aggregates their
outcomes into plain data. Publishing the summary is left to the caller.

Checks share nothing but immutable parameters, so they may run in
parallel. With a deadline, every check runs in a daemon thread; a check
still running when the deadline expires is recorded as an ERROR outcome
and its thread is abandoned. Daemon threads are not joined at exit, so
an abandoned settle or buffer wait never holds the process open.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Any

from confirm.cases import BookingCheck
from confirm.outcome import Outcome, Verdict

logger = logging.getLogger("booking_lifecycle.suite")


class BookingSuite:
    """A named set of checks executed together."""

    def __init__(self, name: str, description: str = ""):
        self.name = name
        self.description = description
        self.checks: list[BookingCheck] = []
        self.outcomes: list[Outcome] = []
        self.elapsed_s = 0.0

    def add_check(self, check: BookingCheck) -> BookingSuite:
        self.checks.append(check)
        return self

    def execute(self, parallel: bool = False, deadline_seconds: float | None = None) -> list[Outcome]:
        """Run every check once, in registration order for the results."""
        t0 = time.monotonic()
        logger.info("Executing %s (%d checks, parallel=%s)", self.name, len(self.checks), parallel)

        if deadline_seconds is not None:
            self.outcomes = self._execute_with_deadline(parallel, deadline_seconds)
        elif parallel and self.checks:
            with ThreadPoolExecutor(max_workers=len(self.checks), thread_name_prefix="check") as pool:
                self.outcomes = list(pool.map(lambda check: check.execute(), self.checks))
        else:
            self.outcomes = [check.execute() for check in self.checks]

        self.elapsed_s = time.monotonic() - t0
        return self.outcomes

    def _execute_with_deadline(self, parallel: bool, deadline_seconds: float) -> list[Outcome]:
        if not self.checks:
            return []
        futures: list[Future] = [Future() for _ in self.checks]
        expired = threading.Event()

        def worker(pairs):
            for check, future in pairs:
                if expired.is_set():
                    return
                future.set_running_or_notify_cancel()
                try:
                    future.set_result(check.execute())
                except Exception as e:
                    future.set_exception(e)

        pairs = list(zip(self.checks, futures))
        batches = [[pair] for pair in pairs] if parallel else [pairs]
        for i, batch in enumerate(batches):
            threading.Thread(target=worker, args=(batch,), name=f"check-{i}", daemon=True).start()

        done, _ = wait(futures, timeout=deadline_seconds)
        expired.set()

        outcomes = []
        for check, future in pairs:
            if future in done:
                outcomes.append(future.result())
            else:
                logger.error("Check timed out after %.1fs: %s", deadline_seconds, check.name)
                outcomes.append(Outcome.error(
                    check.name, f"Timed out after {deadline_seconds:.1f}s",
                    elapsed_s=deadline_seconds,
                ))
        return outcomes

    @property
    def passed(self) -> bool:
        return bool(self.outcomes) and all(o.passed for o in self.outcomes)

    def summary(self) -> dict[str, Any]:
        counts = {v.value: 0 for v in Verdict}
        for outcome in self.outcomes:
            counts[outcome.verdict.value] += 1
        return {
            "name": self.name,
            "description": self.description,
            "passed": self.passed,
            "elapsed_s": round(self.elapsed_s, 2),
            "counts": counts,
            "checks": [o.to_dict() for o in self.outcomes],
        }
