"""heapscope - memory snapshot diagnostics: statistics, leak patterns, health grading and reports."""

__version__ = "0.1.0"
