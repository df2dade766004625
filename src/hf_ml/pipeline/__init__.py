"""Pipeline orchestration."""

from hf_ml.pipeline.orchestrator import (
    ModelUnitResult,
    PipelineOrchestrator,
    PipelineResult,
    UnitFailure,
)

__all__ = ["ModelUnitResult", "PipelineOrchestrator", "PipelineResult", "UnitFailure"]
