"""
Fairness Audit - Report Assembler

Package one audit into an immutable, serializable FairnessReport:
- Metric results, statistical tests, overall score and compliance tier
- Recommendations and bias indicators
- Sample-size adequacy and processing duration
- Context and metadata (calculation version, warnings, disclaimers)

Renderers produce JSON (machine-readable), Markdown and a plain-text
summary (human-readable).

Usage:
    assembler = ReportAssembler(config)
    report = assembler.assemble(
        context=context,
        outcomes=outcomes,
        partitions=partitions,
        metrics=metrics,
        statistical_tests=suite,
        verdict=verdict,
        processing_time_ms=elapsed,
    )

    print(report.to_markdown())
    payload = report.to_json()
"""

from __future__ import annotations

import json
import logging
import uuid
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from types import MappingProxyType
from typing import Any

import numpy as np

from fairness_audit.aggregation.aggregator import AggregateResult, BiasIndicator
from fairness_audit.metrics.base import ComplianceTier, MetricResult, MetricType
from fairness_audit.partitioning.group_partitioner import GroupPartition
from fairness_audit.shared.config import Settings, get_config
from fairness_audit.shared.records import FairnessContext
from fairness_audit.statistics.significance_tests import StatisticalTestSuite

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SampleSize:
    """Candidate counts and their adequacy for statistical analysis."""

    total: int
    positive: int
    negative: int
    groups: Mapping[str, Mapping[str, int]] = field(default_factory=dict)
    minimum_required: int = 30

    @property
    def adequacy_score(self) -> float:
        return min(1.0, self.total / self.minimum_required) if self.minimum_required else 1.0

    @property
    def is_adequate(self) -> bool:
        return self.total >= self.minimum_required

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "total": self.total,
            "positive": self.positive,
            "negative": self.negative,
            "groups": {name: dict(counts) for name, counts in self.groups.items()},
            "minimum_required": self.minimum_required,
            "adequacy_score": self.adequacy_score,
            "is_adequate": self.is_adequate,
        }


@dataclass(frozen=True)
class FairnessReport:
    """The engine's sole output. Never mutated after assembly."""

    report_id: str
    generated_at: datetime
    context: FairnessContext
    sample_size: SampleSize
    metrics: Mapping[MetricType, MetricResult]
    statistical_tests: StatisticalTestSuite
    overall_fairness_score: float | None
    compliance_status: ComplianceTier
    recommendations: tuple[str, ...] = ()
    bias_indicators: tuple[BiasIndicator, ...] = ()
    processing_time_ms: float = 0.0
    metadata: Mapping[str, Any] = field(default_factory=dict)

    @property
    def failed_metrics(self) -> list[MetricType]:
        return [metric for metric, result in self.metrics.items() if not result.is_ok]

    @property
    def warnings(self) -> list[str]:
        return list(self.metadata.get("warnings", []))

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dictionary."""
        return {
            "report_id": self.report_id,
            "generated_at": self.generated_at.isoformat(),
            "context": self.context.to_dict(),
            "sample_size": self.sample_size.to_dict(),
            "metrics": {str(metric): result.to_dict() for metric, result in self.metrics.items()},
            "statistical_tests": self.statistical_tests.to_dict(),
            "overall_fairness_score": self.overall_fairness_score,
            "compliance_status": str(self.compliance_status),
            "recommendations": list(self.recommendations),
            "bias_indicators": [indicator.to_dict() for indicator in self.bias_indicators],
            "processing_time_ms": round(self.processing_time_ms, 3),
            "metadata": _thaw(self.metadata),
        }

    def to_json(self, indent: int | None = 2) -> str:
        """Serialize to JSON."""
        return json.dumps(self.to_dict(), indent=indent, default=str)

    def to_markdown(self) -> str:
        """Render as Markdown."""
        return render_markdown(self)

    def summary(self) -> str:
        """Render a plain-text summary."""
        return render_text_summary(self)


class ReportAssembler:
    """Assemble FairnessReports."""

    def __init__(self, config: Settings | None = None):
        """
        Initialize report assembler.

        Args:
            config: Configuration object (uses default if not provided)
        """
        self.config = config or get_config()

    def assemble(
        self,
        context: FairnessContext,
        outcomes: Sequence[bool],
        partitions: Mapping[str, GroupPartition],
        metrics: Mapping[MetricType, MetricResult],
        statistical_tests: StatisticalTestSuite,
        verdict: AggregateResult,
        processing_time_ms: float,
        warnings: Sequence[str] = (),
        streamed_similarity: bool = False,
    ) -> FairnessReport:
        """
        Assemble one report.

        Args:
            context: Audit provenance, passed through untouched
            outcomes: Selected flag per candidate
            partitions: Single-attribute partitions
            metrics: Metric type -> result
            statistical_tests: Significance test suite
            verdict: Aggregated score, tier, recommendations, indicators
            processing_time_ms: Wall-clock duration of the audit
            warnings: Non-fatal input warnings (e.g. small sample)
            streamed_similarity: Whether similarity rows were streamed

        Returns:
            FairnessReport
        """
        y = np.asarray(outcomes, dtype=bool)
        sample_size = SampleSize(
            total=len(y),
            positive=int(y.sum()),
            negative=int((~y).sum()),
            groups={
                name: {group.key: group.size for group in partition}
                for name, partition in partitions.items()
            },
            minimum_required=self.config.engine.adequate_sample_size,
        )

        disclaimers = []
        for result in metrics.values():
            for note in result.notes:
                if note not in disclaimers:
                    disclaimers.append(note)

        warnings = list(warnings)
        if not sample_size.is_adequate:
            warnings.append(
                f"Sample size {sample_size.total} is below the recommended minimum of "
                f"{sample_size.minimum_required} (adequacy {sample_size.adequacy_score:.0%})"
            )

        metadata = {
            "calculation_version": self.config.engine.calculation_version,
            "protected_attributes": tuple(partitions),
            "significance_level": self.config.statistics.significance_level,
            "similarity_threshold": self.config.similarity.threshold,
            "permutation_iterations": self.config.statistics.permutation_iterations,
            "streamed_similarity": streamed_similarity,
            "warnings": tuple(warnings),
            "disclaimers": tuple(disclaimers),
        }

        report = FairnessReport(
            report_id=f"fairness_{uuid.uuid4().hex}",
            generated_at=datetime.now(UTC),
            context=context,
            sample_size=sample_size,
            metrics=MappingProxyType(dict(metrics)),
            statistical_tests=statistical_tests,
            overall_fairness_score=verdict.overall_fairness_score,
            compliance_status=verdict.compliance_status,
            recommendations=verdict.recommendations,
            bias_indicators=verdict.bias_indicators,
            processing_time_ms=processing_time_ms,
            metadata=MappingProxyType(metadata),
        )

        logger.debug(
            f"Assembled report {report.report_id}",
            extra={"report_id": report.report_id, "metrics": len(metrics)},
        )

        return report


# =============================================================================
# Renderers
# =============================================================================


def render_markdown(report: FairnessReport) -> str:
    """Render a FairnessReport as Markdown."""
    lines = []

    # Header
    lines.append("# Fairness Audit Report")
    lines.append("")
    lines.append(f"**Report ID:** {report.report_id}  ")
    lines.append(f"**Generated:** {report.generated_at.strftime('%Y-%m-%d %H:%M:%S UTC')}  ")
    lines.append(f"**Process:** {report.context.process_type} / {report.context.stage}  ")
    lines.append(f"**Calculation Version:** {report.metadata.get('calculation_version')}  ")
    lines.append("")

    # Verdict
    lines.append("## Summary")
    lines.append("")
    lines.append(f"- **Overall Fairness Score:** {_format_score(report.overall_fairness_score)}")
    lines.append(f"- **Compliance Status:** {report.compliance_status}")
    lines.append(
        f"- **Candidates:** {report.sample_size.total:,} "
        f"({report.sample_size.positive} selected, {report.sample_size.negative} not selected)"
    )
    lines.append(
        f"- **Statistically Significant Disparity:** "
        f"{'Yes' if report.statistical_tests.overall_significant else 'No'}"
    )
    lines.append("")

    # Metrics
    lines.append("## Metrics")
    lines.append("")
    lines.append("| Metric | Status | Score | Compliance |")
    lines.append("|---|---|---|---|")
    for metric, result in report.metrics.items():
        lines.append(
            f"| {metric} | {result.status} | {_format_score(result.score)} | "
            f"{result.compliance or '-'} |"
        )
    lines.append("")

    failed = [result for result in report.metrics.values() if not result.is_ok]
    if failed:
        lines.append("**Failed Metrics:**")
        for result in failed:
            lines.append(f"- {result.metric}: {result.error}")
        lines.append("")

    # Statistical tests
    if report.statistical_tests.attributes:
        lines.append("## Statistical Tests")
        lines.append("")
        lines.append(
            f"Bonferroni-adjusted alpha: {report.statistical_tests.adjusted_alpha:.4g}"
        )
        lines.append("")
        for name, test in report.statistical_tests.attributes.items():
            lines.append(
                f"- **{name}:** {test.independence.test_name} p={_format_p(test.independence.p_value)}, "
                f"permutation p={_format_p(test.permutation.p_value)}"
                f"{' (significant)' if test.significant else ''}"
            )
        lines.append("")

    # Bias indicators
    if report.bias_indicators:
        lines.append("## Bias Indicators")
        lines.append("")
        for indicator in report.bias_indicators:
            lines.append(f"- [{indicator.severity}] {indicator.message}")
        lines.append("")

    # Recommendations
    lines.append("## Recommendations")
    lines.append("")
    for recommendation in report.recommendations:
        lines.append(f"- {recommendation}")
    lines.append("")

    warnings = report.metadata.get("warnings", [])
    disclaimers = report.metadata.get("disclaimers", [])
    if warnings or disclaimers:
        lines.append("## Notes")
        lines.append("")
        for note in [*warnings, *disclaimers]:
            lines.append(f"- {note}")
        lines.append("")

    # Footer
    lines.append("---")
    lines.append("")
    lines.append(f"*Processing time: {report.processing_time_ms:.1f} ms*")

    return "\n".join(lines)


def render_text_summary(report: FairnessReport) -> str:
    """Render a FairnessReport as a plain-text summary."""
    lines = []
    lines.append("=" * 80)
    lines.append(f"FAIRNESS AUDIT REPORT - {report.context.process_type} / {report.context.stage}")
    lines.append("=" * 80)
    lines.append(f"Generated at: {report.generated_at.strftime('%Y-%m-%d %H:%M:%S UTC')}")
    lines.append(f"Candidates: {report.sample_size.total}")
    lines.append(f"Overall score: {_format_score(report.overall_fairness_score)}")
    lines.append(f"Compliance: {report.compliance_status}")
    lines.append("")

    lines.append("METRICS")
    lines.append("-" * 80)
    for metric, result in report.metrics.items():
        if result.is_ok:
            lines.append(f"  [{metric}] {result.score:.3f} {result.compliance} - {result.interpretation}")
        else:
            lines.append(f"  [{metric}] FAILED - {result.error}")
    lines.append("")

    if report.bias_indicators:
        lines.append("BIAS INDICATORS")
        lines.append("-" * 80)
        for indicator in report.bias_indicators:
            lines.append(f"  [{indicator.severity}] {indicator.message}")
        lines.append("")

    lines.append("RECOMMENDATIONS")
    lines.append("-" * 80)
    for recommendation in report.recommendations:
        lines.append(f"  - {recommendation}")
    lines.append("")

    lines.append("=" * 80)

    return "\n".join(lines)


def _format_score(score: float | None) -> str:
    return "n/a" if score is None else f"{score:.3f}"


def _format_p(p_value: float | None) -> str:
    return "n/a" if p_value is None else f"{p_value:.4g}"


def _thaw(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {key: _thaw(item) for key, item in value.items()}
    if isinstance(value, list | tuple):
        return [_thaw(item) for item in value]
    return value
