"""
Fairness Audit - Group Partitioning

Components:
    - GroupPartitioner: Single-attribute and intersectional partitions
    - Group / GroupPartition: Strict, immutable partitions of candidate indices
"""

from fairness_audit.partitioning.group_partitioner import (
    UNKNOWN_CATEGORY,
    Group,
    GroupPartition,
    GroupPartitioner,
    category_label,
    partition_groups,
)

__all__ = [
    "GroupPartitioner",
    "Group",
    "GroupPartition",
    "UNKNOWN_CATEGORY",
    "category_label",
    "partition_groups",
]
