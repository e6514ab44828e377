"""
Fairness Audit - Group Partitioner

Partition candidate indices by protected attribute for fairness evaluation:
- Single-attribute partitioning (gender, age_band, etc.)
- Intersectional partitioning (cartesian product of several attributes)

Every partition is strict: each candidate index belongs to exactly one
group. Missing values (None / NaN) form an explicit "unknown" group
instead of being dropped. Category values are compared by their string
form, so 1 and "1" (or True and "True") land in the same group.

Usage:
    partitioner = GroupPartitioner(config)

    # Partition by gender
    partition = partitioner.partition_by_attribute("gender", genders)

    # Partition by gender AND age band
    partition = partitioner.partition_intersectional(protected_attributes)
    for group in partition:
        print(f"{group.key}: {group.size} candidates")
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

import numpy as np
import pandas as pd

from fairness_audit.shared.config import Settings, get_config

logger = logging.getLogger(__name__)

UNKNOWN_CATEGORY = "unknown"
KEY_SEPARATOR = "|"
DIMENSION_SEPARATOR = "_x_"


def category_label(value: Any) -> str:
    """
    Normalize one attribute value to the string used as its group key.

    Values with the same string form share a key: group keys are what the
    report and the composite intersectional keys carry, and upstream
    attributes often arrive as text from CSV or JSON.
    """
    if value is None:
        return UNKNOWN_CATEGORY
    if isinstance(value, float) and math.isnan(value):
        return UNKNOWN_CATEGORY
    return str(value)


@dataclass(frozen=True)
class Group:
    """
    One group of a partition.

    Holds the candidate indices that share a category value (or, for
    intersectional groups, a combination of values).
    """

    attribute: str  # e.g., "gender" or "gender_x_age_band"
    key: str  # e.g., "F" or "gender:F|age_band:30-39"
    indices: tuple[int, ...]
    percentage: float  # Percentage of all candidates

    @property
    def size(self) -> int:
        return len(self.indices)

    def __repr__(self) -> str:
        return f"Group({self.attribute}={self.key}, size={self.size})"


@dataclass(frozen=True)
class GroupPartition:
    """All groups of one partitioning scheme, plus the per-candidate labels."""

    attribute: str
    attributes: tuple[str, ...]
    groups: tuple[Group, ...]
    labels: tuple[str, ...] = field(repr=False)

    @property
    def total(self) -> int:
        return len(self.labels)

    @property
    def keys(self) -> list[str]:
        return [group.key for group in self.groups]

    @property
    def is_intersectional(self) -> bool:
        return len(self.attributes) > 1

    def __len__(self) -> int:
        return len(self.groups)

    def __iter__(self) -> Iterator[Group]:
        return iter(self.groups)

    def codes(self) -> np.ndarray:
        """Integer group code for every candidate (position in ``groups``)."""
        lookup = {group.key: code for code, group in enumerate(self.groups)}
        return np.fromiter((lookup[label] for label in self.labels), dtype=np.int64, count=self.total)

    def covers(self, candidate_count: int | None = None) -> bool:
        """Check that the groups are a strict partition of all candidates."""
        n = self.total if candidate_count is None else candidate_count
        seen = [index for group in self.groups for index in group.indices]
        return len(seen) == n and set(seen) == set(range(n))


class GroupPartitioner:
    """
    Partition candidates by protected attribute.

    Supports:
    - Single-attribute partitioning: group by category value
    - Intersectional partitioning: group by combination of values
    """

    def __init__(self, config: Settings | None = None):
        """
        Initialize group partitioner.

        Args:
            config: Configuration object (uses default if not provided)
        """
        self.config = config or get_config()

    def partition_by_attribute(self, attribute: str, values: Sequence[Any]) -> GroupPartition:
        """
        Partition candidate indices by one attribute's categories.

        Args:
            attribute: Attribute name
            values: Per-candidate category values

        Returns:
            GroupPartition with one group per category, ordered by key

        Example:
            partition = partitioner.partition_by_attribute("gender", ["F", "M", "F"])
            # groups: F -> (0, 2), M -> (1,)
        """
        labels = [category_label(value) for value in values]
        partition = self._build_partition(attribute, (attribute,), labels)

        logger.debug(
            f"Created {len(partition)} groups by '{attribute}'",
            extra={"attribute": attribute, "num_groups": len(partition)},
        )

        return partition

    def partition_intersectional(
        self,
        protected_attributes: Mapping[str, Sequence[Any]],
        attributes: Sequence[str] | None = None,
    ) -> GroupPartition:
        """
        Partition candidates across the combination of several attributes.

        The composite key concatenates ``attribute:value`` pairs in attribute
        order, so the resulting groups refine every single-attribute partition.

        Args:
            protected_attributes: Attribute name -> per-candidate values
            attributes: Attributes to combine (all of them if not provided)

        Returns:
            GroupPartition of intersectional groups
        """
        names = list(attributes) if attributes is not None else list(protected_attributes)
        missing = [name for name in names if name not in protected_attributes]
        if missing:
            raise KeyError(f"Unknown protected attributes: {missing}")
        if not names:
            raise ValueError("Intersectional partitioning needs at least one attribute")

        columns = [
            [f"{name}:{category_label(value)}" for value in protected_attributes[name]]
            for name in names
        ]
        labels = [KEY_SEPARATOR.join(parts) for parts in zip(*columns)]
        partition = self._build_partition(DIMENSION_SEPARATOR.join(names), tuple(names), labels)

        logger.debug(
            f"Created {len(partition)} intersectional groups",
            extra={"attributes": names, "num_groups": len(partition)},
        )

        return partition

    def partition_all(
        self, protected_attributes: Mapping[str, Sequence[Any]]
    ) -> dict[str, GroupPartition]:
        """Partition by every protected attribute separately."""
        return {
            name: self.partition_by_attribute(name, values)
            for name, values in protected_attributes.items()
        }

    def get_partition_summary(self, partition: GroupPartition) -> pd.DataFrame:
        """
        Get summary statistics for a partition.

        Args:
            partition: GroupPartition to summarize

        Returns:
            DataFrame with one row per group
        """
        summary = []
        for group in partition:
            summary.append(
                {
                    "attribute": group.attribute,
                    "key": group.key,
                    "size": group.size,
                    "percentage": group.percentage,
                }
            )

        return pd.DataFrame(summary)

    # =========================================================================
    # Private Methods
    # =========================================================================

    def _build_partition(
        self,
        attribute: str,
        attributes: tuple[str, ...],
        labels: list[str],
    ) -> GroupPartition:
        total = len(labels)
        series = pd.Series(labels, dtype=object)

        groups = []
        for key, positions in series.groupby(series, sort=True).indices.items():
            groups.append(
                Group(
                    attribute=attribute,
                    key=str(key),
                    indices=tuple(int(i) for i in positions),
                    percentage=len(positions) / total * 100 if total else 0.0,
                )
            )

        return GroupPartition(
            attribute=attribute,
            attributes=attributes,
            groups=tuple(groups),
            labels=tuple(labels),
        )


# =============================================================================
# Convenience Functions
# =============================================================================


def partition_groups(
    protected_attributes: Mapping[str, Sequence[Any]],
    intersectional: bool = False,
    config: Settings | None = None,
) -> dict[str, GroupPartition] | GroupPartition:
    """
    Convenience function to partition candidates.

    Args:
        protected_attributes: Attribute name -> per-candidate values
        intersectional: Combine all attributes into one partition
        config: Configuration object

    Returns:
        One partition per attribute, or the single intersectional partition
    """
    partitioner = GroupPartitioner(config)

    if intersectional:
        return partitioner.partition_intersectional(protected_attributes)

    return partitioner.partition_all(protected_attributes)
