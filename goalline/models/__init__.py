"""Market model building blocks: evaluator math and the component table."""

from .components import COMPONENTS, Component, get_component, validate_params

__all__ = ["COMPONENTS", "Component", "get_component", "validate_params"]
