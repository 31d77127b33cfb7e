"""Analysis engine: statistics, leak patterns, health grading and report generation."""

from src.analysis.statistics import ReportStatistics, StatsSummary, calculate_statistics
from src.analysis.leak_patterns import LeakPattern, LeakPatternReport, identify_leak_patterns
from src.analysis.health import HealthGrade, MemoryHealthAssessment, assess_memory_health
from src.analysis.report_compiler import (
    InsufficientDataError,
    MemoryReport,
    ReportConfig,
    can_generate_report,
    generate_memory_report,
)
from src.analysis.report_generator import ReportGenerator

__all__ = [
    "ReportStatistics",
    "StatsSummary",
    "calculate_statistics",
    "LeakPattern",
    "LeakPatternReport",
    "identify_leak_patterns",
    "HealthGrade",
    "MemoryHealthAssessment",
    "assess_memory_health",
    "InsufficientDataError",
    "MemoryReport",
    "ReportConfig",
    "can_generate_report",
    "generate_memory_report",
    "ReportGenerator",
]
