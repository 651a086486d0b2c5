"""
Actuary - Console Result Stream

This module provides the result collector: it keeps every result in the
order it was produced and echoes each one to the terminal as it arrives,
with colours on a TTY and plain text otherwise.
"""

import sys
from typing import Optional, TextIO

from ..core.check import CheckResult, Status


class ResultCollector:
    """Accumulates results in execution order and echoes them.

    The collector never reorders, deduplicates or drops results;
    snapshot() returns exactly what was observed.

    Example:
        collector = ResultCollector()
        runner = AuditRunner(registry, collector=collector)
        runner.run(profile, context)
        print(collector.summary())
    """

    # ANSI color codes
    COLORS = {
        "green": "\033[92m",
        "red": "\033[91m",
        "yellow": "\033[93m",
        "blue": "\033[94m",
        "cyan": "\033[96m",
        "reset": "\033[0m",
        "bold": "\033[1m",
    }

    STATUS_COLORS = {
        Status.PASS: "green",
        Status.WARN: "red",
        Status.SKIP: "yellow",
        Status.INFO: "blue",
    }

    def __init__(
        self,
        file: Optional[TextIO] = None,
        color: Optional[bool] = None,
        echo: bool = True,
    ) -> None:
        """Initialize the collector.

        Args:
            file: Output stream for the echo (defaults to sys.stdout)
            color: Force colours on or off (default: on when file is a TTY)
            echo: If False, collect silently
        """
        self.file = file or sys.stdout
        self._echo = echo
        if color is None:
            color = hasattr(self.file, "isatty") and self.file.isatty()
        self._use_colors = color
        self._results: list[CheckResult] = []

    def _color(self, text: str, color: str) -> str:
        """Apply color to text if colors are enabled."""
        if self._use_colors:
            return f"{self.COLORS.get(color, '')}{text}{self.COLORS['reset']}"
        return text

    def render(self, result: CheckResult) -> str:
        """Render one result as console text."""
        tag = self._color(f"[{result.status.value}]", self.STATUS_COLORS[result.status])
        line = f"{tag} - {result.name}"
        if result.output:
            output = "\n".join(f"\t{part}" for part in result.output.splitlines())
            line = f"{line}\n{output}"
        return line + "\n"

    def begin_category(self, name: str) -> None:
        """Echo a header for the category about to run."""
        if not self._echo:
            return
        self.file.write("\n" + self._color(f"{name}", "bold") + "\n")
        self.file.flush()

    def observe(self, result: CheckResult) -> None:
        """Record a result and echo it."""
        self._results.append(result)
        if self._echo:
            self.file.write(self.render(result))
            self.file.flush()

    def snapshot(self) -> list[CheckResult]:
        """Get every result observed so far, in order."""
        return list(self._results)

    def summary(self) -> dict[str, int]:
        """Count observed results per status."""
        counts = {status.value: 0 for status in Status}
        for result in self._results:
            counts[result.status.value] += 1
        counts["TOTAL"] = len(self._results)
        return counts

    def __len__(self) -> int:
        return len(self._results)
