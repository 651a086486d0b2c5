"""
Audit profile loading.

A profile is a TOML document listing categories in order, each with an
ordered checklist:

    [[Audit]]
    Name = "Host Configuration"
    Checklist = ["kernel_version", "separate_partition"]

Profiles come from a local file or from a profile server, keyed by hash.
Both sources produce the same Profile value.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import tomllib
from typing import Any
from urllib.error import URLError
from urllib.request import Request, urlopen

from .errors import ProfileError


_PROFILES_DIR = Path(__file__).resolve().parent.parent / "profiles"
DEFAULT_PROFILE = "default"
DEFAULT_FETCH_TIMEOUT = 30


@dataclass(frozen=True)
class AuditCategory:
    """One profile section: a category name and its ordered checklist."""

    name: str
    checklist: tuple[str, ...]


@dataclass(frozen=True)
class Profile:
    """An ordered list of categories defining one audit run."""

    audit: tuple[AuditCategory, ...]

    def __len__(self) -> int:
        """Total number of checklist entries across all categories."""
        return sum(len(category.checklist) for category in self.audit)


def parse_profile(text: str, source: str = "<string>") -> Profile:
    """Parse profile TOML text.

    Args:
        text: TOML document
        source: Description of where the text came from, for error messages

    Returns:
        Parsed Profile

    Raises:
        ProfileError: If the document is not valid TOML or not a profile
    """
    try:
        data = tomllib.loads(text)
    except tomllib.TOMLDecodeError as e:
        raise ProfileError(f"Invalid profile {source}: {e}") from e

    sections = data.get("Audit")
    if not isinstance(sections, list):
        raise ProfileError(f"Invalid profile {source}: missing [[Audit]] sections")

    return Profile(audit=tuple(_parse_category(section, source) for section in sections))


def _parse_category(section: Any, source: str) -> AuditCategory:
    if not isinstance(section, dict):
        raise ProfileError(f"Invalid profile {source}: Audit entries must be tables")

    name = section.get("Name")
    if not isinstance(name, str) or not name:
        raise ProfileError(f"Invalid profile {source}: Audit entry without a Name")

    checklist = section.get("Checklist", [])
    if not isinstance(checklist, list) or not all(isinstance(c, str) for c in checklist):
        raise ProfileError(
            f"Invalid profile {source}: Checklist of '{name}' must be a list of strings"
        )

    return AuditCategory(name=name, checklist=tuple(checklist))


def load_profile(path: str | Path) -> Profile:
    """Load a profile from a local file.

    Raises:
        ProfileError: If the path does not exist or cannot be parsed
    """
    profile_path = Path(path)
    if not profile_path.is_file():
        raise ProfileError(f"Invalid profile path: {profile_path}")

    try:
        text = profile_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ProfileError(f"Unable to read profile {profile_path}: {e}") from e

    return parse_profile(text, source=str(profile_path))


def fetch_profile(
    profile_hash: str,
    server_url: str,
    timeout: int = DEFAULT_FETCH_TIMEOUT,
) -> Profile:
    """Fetch a profile from a profile server.

    The profile is requested from `<server_url>/<profile_hash>`.

    Raises:
        ProfileError: If no server is configured, the fetch fails, or the
            returned document is not a valid profile
    """
    if not server_url:
        raise ProfileError(
            "No profile server configured; use --profile-server "
            "or set ACTUARY_PROFILE_SERVER"
        )
    if not profile_hash:
        raise ProfileError("Empty profile hash")

    url = f"{server_url.rstrip('/')}/{profile_hash}"
    request = Request(url, headers={"User-Agent": "actuary"})
    try:
        with urlopen(request, timeout=timeout) as response:
            status = getattr(response, "status", 200)
            if status != 200:
                raise ProfileError(f"Unable to fetch profile {url}: HTTP {status}")
            body = response.read().decode("utf-8")
    except (URLError, OSError, UnicodeDecodeError) as e:
        raise ProfileError(f"Unable to fetch profile {url}: {e}") from e

    return parse_profile(body, source=url)


def default_profile_path() -> Path:
    """Path of the bundled profile that lists every shipped check."""
    return _PROFILES_DIR / f"{DEFAULT_PROFILE}.toml"


def list_available_profiles() -> list[str]:
    """List bundled profile names."""
    if not _PROFILES_DIR.exists():
        return []
    return sorted(path.stem for path in _PROFILES_DIR.glob("*.toml"))
