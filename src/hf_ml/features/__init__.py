"""Feature-domain selection."""

from hf_ml.features.forward_selection import (
    CandidateResult,
    ForwardDomainSelector,
    ForwardSelectionState,
    SelectionPhase,
)

__all__ = [
    "CandidateResult",
    "ForwardDomainSelector",
    "ForwardSelectionState",
    "SelectionPhase",
]
