from enum import Enum


class ActionType(Enum):
    """Player decisions an expectation is computed for, in table column order."""

    STAND = "stand"
    HIT = "hit"
    DOUBLE = "double"
    SPLIT = "split"

    @property
    def column(self) -> str:
        """Name of this action's expectation column in an odds table."""
        return f"ev_{self.value}"
