"""faultline: heuristic source diagnostics with an optional LLM advisor."""

__version__ = "0.1.0"
