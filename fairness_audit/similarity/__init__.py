"""
Fairness Audit - Similarity

Components:
    - SimilarityEngine: Weighted skills / experience / education similarity
    - SimilarityMatrix: Flat n x n buffer or streamed row blocks
"""

from fairness_audit.similarity.similarity_engine import (
    EncodedFeatures,
    SimilarityEngine,
    SimilarityMatrix,
    build_similarity_matrix,
)

__all__ = [
    "SimilarityEngine",
    "SimilarityMatrix",
    "EncodedFeatures",
    "build_similarity_matrix",
]
