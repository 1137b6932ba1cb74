"""
GOALLINE - Market Scoring & Publish-Eligibility Engine

Fuses settlement and predictive football feeds into one feature
contract, scores betting markets with a configurable Poisson model,
gates picks for publishing and validates the model by backtesting.
"""

__version__ = "1.0.0"
