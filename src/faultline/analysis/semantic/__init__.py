"""Semantic heuristics: duplicates, unused imports, naming conventions."""

from faultline.analysis.semantic.heuristics import analyze_semantics

__all__ = ["analyze_semantics"]
