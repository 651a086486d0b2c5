"""
Audit Checks: Container Images and Build File (CIS Docker 4.x)
"""

from typing import Any, Optional

from actuary.core.check import Category, Severity

from ._base import ContainerPropertyCheck


class ContainerUserCheck(ContainerPropertyCheck):
    """Check running containers do not run as root.

    A container whose image and run options set no user runs its main
    process as root inside the container.
    """

    id = "root_containers"
    name = "4.1 Create a user for the container"
    description = "Verifies that running containers are started with a non-root user"
    category = Category.CONTAINER_IMAGES
    severity = Severity.HIGH

    FAILURE = "Containers running as root"

    def violation(self, container: dict[str, Any]) -> Optional[str]:
        user = str((container.get("Config") or {}).get("User") or "")
        if user in ("", "root", "0") or user.startswith(("root:", "0:")):
            return ""
        return None
