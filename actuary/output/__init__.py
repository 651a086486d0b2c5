"""
Actuary - Output

This package provides the console result stream and report writers.
"""

from .console import ResultCollector
from .report import (
    SUPPORTED_FORMATS,
    read_report,
    to_json,
    to_xml,
    write_report,
)

__all__ = [
    "ResultCollector",
    "SUPPORTED_FORMATS",
    "read_report",
    "to_json",
    "to_xml",
    "write_report",
]
