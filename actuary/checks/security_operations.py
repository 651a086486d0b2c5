"""
Audit Checks: Docker Security Operations (CIS Docker 6.x)
"""

from actuary.core.check import BaseCheck, Category, CheckResult, Severity
from actuary.core.context import AuditContext
from actuary.core.errors import RuntimeQueryError


class CentralLoggingCheck(BaseCheck):
    id = "central_logging"
    name = "6.5 Use a centralized and remote log collection service"
    description = "Reports the logging driver configured for the Docker daemon"
    category = Category.SECURITY_OPERATIONS
    severity = Severity.LOW

    LOCAL_DRIVERS = ("json-file", "local", "none", "")

    def run(self, context: AuditContext) -> CheckResult:
        try:
            driver = str(context.runtime.info().get("LoggingDriver") or "")
        except RuntimeQueryError as e:
            return self.skipped(f"Unable to query Docker info: {e}")
        if driver in self.LOCAL_DRIVERS:
            return self.info(
                f"Containers log locally ('{driver or 'unknown'}' driver); "
                "verify logs are shipped to a central service"
            )
        return self.info(f"Containers log through the '{driver}' driver")


class ContainerSprawlCheck(BaseCheck):
    """Check the host is not accumulating stopped containers."""

    id = "container_sprawl"
    name = "6.6 Avoid container sprawl"
    description = "Compares the number of created and running containers"
    category = Category.SECURITY_OPERATIONS
    severity = Severity.LOW

    MAX_STOPPED = 25

    def run(self, context: AuditContext) -> CheckResult:
        try:
            total = len(context.runtime.container_ids(all=True))
            running = len(context.runtime.container_ids())
        except RuntimeQueryError as e:
            return self.skipped(f"Unable to list containers: {e}")

        stopped = total - running
        message = (
            f"There are currently a total of {total} containers, "
            f"with only {running} of them currently running"
        )
        if stopped > self.MAX_STOPPED:
            return self.failed(message)
        return self.info(message)
