"""
Fairness Audit - Engine

Single entry point of the fairness-metrics engine. One invocation is a pure
computation over the data supplied:

    Input Validator
        -> Group Partitioner / Similarity Engine
        -> 7 Metric Calculators (parallel) + Statistical Test Engine
        -> Aggregator
        -> Report Assembler

The engine is constructed once with its configuration and holds no state
between invocations; calculators share read-only inputs and each returns
its own result, so they run on a thread pool without locking.

Usage:
    engine = FairnessEngine(config)

    report = engine.compute_fairness_report(
        candidates=candidates,  # FeatureRecord (or candidate dicts)
        outcomes=selected,
        protected_attributes={"gender": genders, "age_band": age_bands},
        context=FairnessContext(process_type=ProcessType.HIRING, stage="screening"),
    )

    print(report.overall_fairness_score, report.compliance_status)
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from typing import Any

import numpy as np

from fairness_audit.aggregation.aggregator import FairnessAggregator
from fairness_audit.metrics import CALCULATORS
from fairness_audit.metrics.base import MetricCalculator, MetricInputs, MetricResult, MetricType
from fairness_audit.partitioning.group_partitioner import GroupPartitioner
from fairness_audit.reporting.report import FairnessReport, ReportAssembler
from fairness_audit.shared.config import Settings, get_config
from fairness_audit.shared.records import FairnessContext, FeatureRecord
from fairness_audit.similarity.similarity_engine import SimilarityEngine
from fairness_audit.statistics.significance_tests import StatisticalTestEngine
from fairness_audit.validation.input_validator import InputValidator

logger = logging.getLogger(__name__)


class FairnessEngine:
    """
    Fairness-metrics engine for hiring-pipeline audits.

    All collaborators are built from one configuration and injected into
    the calculators, so two engines with different settings never share
    state.
    """

    def __init__(self, config: Settings | None = None):
        """
        Initialize fairness engine.

        Args:
            config: Configuration object (uses default if not provided)
        """
        self.config = config or get_config()
        self.max_workers = self.config.engine.max_workers

        self.validator = InputValidator(self.config)
        self.partitioner = GroupPartitioner(self.config)
        self.similarity = SimilarityEngine(self.config)
        self.statistics = StatisticalTestEngine(self.config)
        self.calculators: list[MetricCalculator] = [
            calculator(self.config, statistics=self.statistics, similarity=self.similarity)
            for calculator in CALCULATORS
        ]
        self.aggregator = FairnessAggregator(self.config)
        self.assembler = ReportAssembler(self.config)

    def compute_fairness_report(
        self,
        candidates: Sequence[FeatureRecord | Mapping[str, Any]],
        outcomes: Sequence[bool],
        protected_attributes: Mapping[str, Sequence[Any]],
        context: FairnessContext | None = None,
        *,
        ground_truth: Sequence[bool] | None = None,
        cancel_event: threading.Event | None = None,
    ) -> FairnessReport:
        """
        Audit one set of hiring outcomes.

        Args:
            candidates: Candidate feature records (dicts are converted)
            outcomes: Selected / not-selected flag per candidate
            protected_attributes: Attribute name -> per-candidate category
            context: Audit provenance, copied into the report
            ground_truth: Optional independent outcome signal; enables real
                TPR/FPR for equalized odds and predictive equality
            cancel_event: Set to stop permutation tests early

        Returns:
            FairnessReport

        Raises:
            ValidationError: If input lengths mismatch or input is empty
        """
        start_time = time.perf_counter()
        context = context or FairnessContext()

        logger.info(
            f"Starting fairness audit for {len(candidates)} candidates",
            extra={
                "candidate_count": len(candidates),
                "protected_attributes": list(protected_attributes),
                "process_type": str(context.process_type),
                "stage": context.stage,
            },
        )

        validation = self.validator.validate(
            candidates, outcomes, protected_attributes, ground_truth
        )

        records = [self._to_record(candidate) for candidate in candidates]
        y = np.asarray(outcomes, dtype=bool)
        truth = np.asarray(ground_truth, dtype=bool) if ground_truth is not None else None

        partitions = self.partitioner.partition_all(protected_attributes)
        intersectional = (
            self.partitioner.partition_intersectional(protected_attributes)
            if protected_attributes
            else None
        )
        similarity = self.similarity.build_matrix(records)

        inputs = MetricInputs(
            candidates=records,
            outcomes=y,
            partitions=partitions,
            intersectional=intersectional,
            similarity=similarity,
            ground_truth=truth,
        )

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            tests_future = executor.submit(
                self.statistics.run_suite, partitions, y, cancel_event
            )
            metric_futures = [
                (calculator.metric_type, executor.submit(calculator.run, inputs))
                for calculator in self.calculators
            ]
            metrics: dict[MetricType, MetricResult] = {
                metric: future.result() for metric, future in metric_futures
            }
            statistical_tests = tests_future.result()

        verdict = self.aggregator.aggregate(metrics, statistical_tests)
        processing_time_ms = (time.perf_counter() - start_time) * 1000

        report = self.assembler.assemble(
            context=context,
            outcomes=y,
            partitions=partitions,
            metrics=metrics,
            statistical_tests=statistical_tests,
            verdict=verdict,
            processing_time_ms=processing_time_ms,
            warnings=validation.warnings,
            streamed_similarity=not similarity.is_materialized,
        )

        logger.info(
            f"Fairness audit complete: score={report.overall_fairness_score}, "
            f"compliance={report.compliance_status} ({processing_time_ms:.0f}ms)",
            extra={
                "report_id": report.report_id,
                "overall_fairness_score": report.overall_fairness_score,
                "compliance_status": str(report.compliance_status),
                "failed_metrics": [str(m) for m in report.failed_metrics],
                "duration_ms": processing_time_ms,
            },
        )

        return report

    # =========================================================================
    # Private Methods
    # =========================================================================

    def _to_record(self, candidate: FeatureRecord | Mapping[str, Any]) -> FeatureRecord:
        if isinstance(candidate, FeatureRecord):
            return candidate
        return FeatureRecord.from_mapping(
            candidate, education_ranks=self.config.similarity.education_levels
        )


# =============================================================================
# Convenience Functions
# =============================================================================


def compute_fairness_report(
    candidates: Sequence[FeatureRecord | Mapping[str, Any]],
    outcomes: Sequence[bool],
    protected_attributes: Mapping[str, Sequence[Any]],
    context: FairnessContext | None = None,
    *,
    ground_truth: Sequence[bool] | None = None,
    cancel_event: threading.Event | None = None,
    config: Settings | None = None,
) -> FairnessReport:
    """
    Convenience function to audit one set of hiring outcomes.

    Raises:
        ValidationError: If input lengths mismatch or input is empty
    """
    return FairnessEngine(config).compute_fairness_report(
        candidates,
        outcomes,
        protected_attributes,
        context,
        ground_truth=ground_truth,
        cancel_event=cancel_event,
    )
