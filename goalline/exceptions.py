"""
Fatal errors raised by the engine.

Only these cross component boundaries. Missing optional data is never an
exception; it surfaces as risk flags on the scoring result.
"""


class GoallineError(Exception):
    """Base class for all engine errors."""


class InvalidSourceData(GoallineError, ValueError):
    """Settlement record lacks the identity fields needed to build a contract."""


class InvalidFeatureContract(GoallineError, ValueError):
    """Feature contract is structurally inconsistent (e.g. bad completeness)."""


class UnknownMarket(GoallineError, KeyError):
    """Market id is not present in the registry."""

    def __init__(self, market_id: str):
        super().__init__(market_id)
        self.market_id = market_id

    def __str__(self) -> str:
        return f"Unknown market: {self.market_id}"


class RegistryError(GoallineError, ValueError):
    """Market registry document is invalid."""


class InsufficientData(GoallineError, ValueError):
    """Not enough historical rows to run a backtest."""

    def __init__(self, found: int, required: int):
        super().__init__(
            f"Insufficient historical data: {found} matches (minimum {required})"
        )
        self.found = found
        self.required = required
