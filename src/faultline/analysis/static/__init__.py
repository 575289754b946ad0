"""Static analysis: deterministic delimiter and structure checks."""

from faultline.analysis.static.delimiters import DelimiterScanner, scan_delimiters
from faultline.analysis.static.structure import analyze_structure

__all__ = [
    "DelimiterScanner",
    "analyze_structure",
    "scan_delimiters",
]
