"""Core data model and pipeline for mdassets."""

from mdassets.core.references import (
    FetchResult,
    ImageReference,
    PipelineResult,
    ReferenceCategory,
    ReferenceOutcome,
    TranscodeResult,
)

__all__ = [
    "ImageReference",
    "ReferenceCategory",
    "FetchResult",
    "TranscodeResult",
    "ReferenceOutcome",
    "PipelineResult",
]
