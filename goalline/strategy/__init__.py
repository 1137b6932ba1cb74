"""GOALLINE Strategy Module - publish eligibility gating."""

from .eligibility import PublishEligibilityGate, PublishEligibilityResult, PublishStats

__all__ = [
    "PublishEligibilityGate",
    "PublishEligibilityResult",
    "PublishStats",
]
