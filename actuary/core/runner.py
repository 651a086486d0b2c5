"""
Actuary - Audit Runner

Resolves a profile against the registry and executes its checks in
declared order.
"""

import queue
import threading
import time
from collections import deque
from typing import Optional, Protocol

from .check import BaseCheck, Category, CheckResult
from .context import AuditContext
from .profile import AuditCategory, Profile
from .registry import AuditRegistry


class ResultSink(Protocol):
    """Receiver for results as they are produced."""

    def begin_category(self, name: str) -> None: ...

    def observe(self, result: CheckResult) -> None: ...


class _Execution:
    """A single check running on its own daemon thread."""

    def __init__(
        self,
        index: int,
        check: BaseCheck,
        context: AuditContext,
        done: "queue.Queue[_Execution]",
    ) -> None:
        self.index = index
        self.check = check
        self.result: Optional[CheckResult] = None
        self.started = 0.0
        self._context = context
        self._done = done
        self._thread = threading.Thread(
            target=self._run, name=f"actuary-{check.id}", daemon=True
        )

    def start(self) -> None:
        self.started = time.monotonic()
        self._thread.start()

    def _run(self) -> None:
        try:
            self.result = self.check.execute(self._context)
        finally:
            self._done.put(self)


class AuditRunner:
    """Runs the checks a profile asks for.

    Categories run in profile order and checks in checklist order; the
    returned list is exactly that concatenation. An unknown category or
    check name raises a ConfigurationError at the point it is reached,
    so nothing listed after it runs.

    With max_workers > 1 the checks of one category run on up to that
    many daemon threads. The whole checklist of that category is resolved
    first, and results are still delivered in checklist order. A check's
    timeout counts from the moment it starts. An overrunning check is
    reported as skipped and its slot goes to the next queued check; its
    thread never holds up interpreter exit.

    Example:
        runner = AuditRunner(build_default_registry(), collector=ResultCollector())
        results = runner.run(load_profile("profile.toml"), context)
    """

    def __init__(
        self,
        registry: AuditRegistry,
        collector: Optional[ResultSink] = None,
        max_workers: int = 1,
        check_timeout: Optional[float] = None,
    ) -> None:
        """Initialize the runner.

        Args:
            registry: Check groups to resolve profile entries against
            collector: Optional sink receiving each result as produced
            max_workers: Worker threads per category (1 runs sequentially)
            check_timeout: Seconds a pooled check may run before it is
                reported as skipped; ignored when running sequentially
        """
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self._registry = registry
        self._collector = collector
        self._max_workers = max_workers
        self._check_timeout = check_timeout

    def run(self, profile: Profile, context: AuditContext) -> list[CheckResult]:
        """Execute every check of the profile.

        Raises:
            UnknownCategoryError: If a category name is not recognised
            UnknownCheckError: If a checklist entry is not registered
        """
        results: list[CheckResult] = []

        for audit_category in profile.audit:
            category = Category.from_name(audit_category.name)
            if self._collector is not None:
                self._collector.begin_category(audit_category.name)

            if self._max_workers > 1:
                produced = self._run_pooled(category, audit_category, context)
            else:
                produced = self._run_sequential(category, audit_category, context)

            for result in produced:
                results.append(result)
                if self._collector is not None:
                    self._collector.observe(result)

        return results

    def _run_sequential(
        self,
        category: Category,
        audit_category: AuditCategory,
        context: AuditContext,
    ):
        # Generator so each result reaches the collector before the next lookup
        for check_id in audit_category.checklist:
            check = self._registry.lookup(category, check_id)
            yield check.execute(context)

    def _run_pooled(
        self,
        category: Category,
        audit_category: AuditCategory,
        context: AuditContext,
    ) -> list[CheckResult]:
        checks = [
            self._registry.lookup(category, check_id)
            for check_id in audit_category.checklist
        ]
        done: "queue.Queue[_Execution]" = queue.Queue()
        waiting = deque(enumerate(checks))
        running: dict[int, _Execution] = {}
        results: list[Optional[CheckResult]] = [None] * len(checks)

        while waiting or running:
            while waiting and len(running) < self._max_workers:
                index, check = waiting.popleft()
                execution = _Execution(index, check, context, done)
                running[index] = execution
                execution.start()

            try:
                finished = done.get(timeout=self._next_wait(running))
            except queue.Empty:
                self._expire(running, results)
                continue

            # Already reported as timed out
            if running.pop(finished.index, None) is None:
                continue
            results[finished.index] = finished.result or finished.check.failed(
                "Check execution did not return a result"
            )

        return results

    def _next_wait(self, running: dict[int, _Execution]) -> Optional[float]:
        """Seconds until the oldest running check reaches its timeout."""
        if self._check_timeout is None:
            return None
        oldest = min(execution.started for execution in running.values())
        return max(0.0, oldest + self._check_timeout - time.monotonic())

    def _expire(
        self,
        running: dict[int, _Execution],
        results: list[Optional[CheckResult]],
    ) -> None:
        """Report overdue checks as skipped and free their worker slots.

        The thread of an expired check is left to finish on its own.
        """
        now = time.monotonic()
        for index, execution in list(running.items()):
            if now - execution.started < self._check_timeout:
                continue
            del running[index]
            check = execution.check
            results[index] = check.skipped(
                f"Check '{check.name}' timed out after {self._check_timeout}s"
            )
