"""
Actuary - Report Writer

This module serializes the ordered result sequence of a run to JSON or
XML, and parses such reports back.
"""

import json
import os
import stat
import tempfile
from pathlib import Path
from typing import Union
from xml.etree.ElementTree import Element, ParseError, SubElement, fromstring, tostring

from ..core.check import CheckResult

SUPPORTED_FORMATS = ("json", "xml")

PathLike = Union[str, Path]

# Permissions of a newly created report; an existing report keeps its own
REPORT_MODE = 0o644


def normalize_format(fmt: str) -> str:
    """Lower-case a format name for matching."""
    return (fmt or "").strip().lower()


def is_supported_format(fmt: str) -> bool:
    return normalize_format(fmt) in SUPPORTED_FORMATS


def to_json(results: list[CheckResult], pretty: bool = True) -> str:
    """Format results as a JSON report.

    Returns:
        JSON string of the form {"Results": [{"Name", "Status", "Output"}]}
    """
    payload = {"Results": [result.to_dict() for result in results]}
    if pretty:
        return json.dumps(payload, indent=2)
    return json.dumps(payload, separators=(",", ":"))


def to_xml(results: list[CheckResult]) -> str:
    """Format results as an XML report.

    Returns:
        XML string of the form <Report><Result><Name/>...</Result></Report>
    """
    root = Element("Report")
    for result in results:
        node = SubElement(root, "Result")
        for key, value in result.to_dict().items():
            SubElement(node, key).text = value
    # A raw carriage return would be normalized to a newline by any parser
    return tostring(root, encoding="unicode").replace("\r", "&#13;")


def from_json(text: str) -> list[CheckResult]:
    """Parse a JSON report.

    Raises:
        ValueError: If the text is not a valid report
    """
    data = json.loads(text)
    if not isinstance(data, dict) or not isinstance(data.get("Results"), list):
        raise ValueError("JSON report must be an object with a Results list")
    return [CheckResult.from_dict(item) for item in data["Results"]]


def from_xml(text: str) -> list[CheckResult]:
    """Parse an XML report.

    Raises:
        ValueError: If the text is not a valid report
    """
    try:
        root = fromstring(text)
    except ParseError as e:
        raise ValueError(f"Invalid XML report: {e}") from e
    if root.tag != "Report":
        raise ValueError(f"XML report root must be <Report>, got <{root.tag}>")
    return [
        CheckResult.from_dict({child.tag: child.text or "" for child in node})
        for node in root.findall("Result")
    ]


_SERIALIZERS = {
    "json": to_json,
    "xml": to_xml,
}

_PARSERS = {
    "json": from_json,
    "xml": from_xml,
}


def write_report(path: PathLike, fmt: str, results: list[CheckResult]) -> bool:
    """Write results to a report file.

    The format is matched case-insensitively against json and xml. Any
    other format writes nothing and is not an error. The content goes to
    a temporary file next to the target which is then renamed into place,
    so a failed write never leaves a partial report behind. A replaced
    report keeps its permission bits; a new one is created with
    REPORT_MODE.

    Args:
        path: Report file path
        fmt: Output format name
        results: Results in execution order

    Returns:
        True if a report was written, False if the format is unsupported

    Raises:
        OSError: If the file cannot be written
    """
    serializer = _SERIALIZERS.get(normalize_format(fmt))
    if serializer is None:
        return False

    content = serializer(results)
    target = Path(path)
    try:
        mode = stat.S_IMODE(target.stat().st_mode)
    except FileNotFoundError:
        mode = REPORT_MODE
    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{target.name}.", suffix=".tmp", dir=str(target.parent)
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            os.fchmod(f.fileno(), mode)
            f.write(content)
        os.replace(tmp_name, target)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
    return True


def read_report(path: PathLike, fmt: str) -> list[CheckResult]:
    """Read a report written by write_report.

    Raises:
        ValueError: If the format is unsupported or the content invalid
        OSError: If the file cannot be read
    """
    parser = _PARSERS.get(normalize_format(fmt))
    if parser is None:
        raise ValueError(f"Unsupported report format: {fmt!r}")
    return parser(Path(path).read_text(encoding="utf-8"))
