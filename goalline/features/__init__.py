"""
Features package - composition of source records into FeatureContracts.

Usage:
    from goalline.features import FeatureComposer, InMemoryPredictiveLookup

    lookup = InMemoryPredictiveLookup(predictive_records)
    composed = FeatureComposer().compose(settlement_record, lookup)
    contract = composed.contract
"""

from .composer import (
    DEFAULT_LINK_WINDOW_SECONDS,
    LinkMethod,
    SourceReferences,
    ComposedFeatures,
    PredictiveLookup,
    InMemoryPredictiveLookup,
    FeatureComposer,
    normalize_name,
    compose,
)


__all__ = [
    "DEFAULT_LINK_WINDOW_SECONDS",
    "LinkMethod",
    "SourceReferences",
    "ComposedFeatures",
    "PredictiveLookup",
    "InMemoryPredictiveLookup",
    "FeatureComposer",
    "normalize_name",
    "compose",
]
