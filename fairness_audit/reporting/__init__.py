"""
Fairness Audit - Reporting Module

Immutable report value and its renderers.
"""

from fairness_audit.reporting.report import (
    FairnessReport,
    ReportAssembler,
    SampleSize,
    render_markdown,
    render_text_summary,
)

__all__ = [
    "FairnessReport",
    "ReportAssembler",
    "SampleSize",
    "render_markdown",
    "render_text_summary",
]
