"""
Position Ledger - the set of open positions held by one engine
"""

from collections.abc import Iterator
from dataclasses import dataclass, field

from ..exceptions import (
    InvalidInputException,
    PositionAlreadyOpenException,
    PositionLimitExceededException,
    PositionNotFoundException,
)
from .position import Position


@dataclass
class PositionLedger:
    """
    Open positions keyed by symbol.

    Holds at most one position per symbol and at most ``max_positions``
    positions in total. Pure in-memory state; callers serialize access.
    """

    max_positions: int = 10
    positions: dict[str, Position] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.max_positions <= 0:
            raise InvalidInputException(
                "Max positions must be positive", field="max_positions", value=self.max_positions
            )

    def ensure_can_open(self, symbol: str) -> None:
        """Raise if a new position for ``symbol`` would break the ledger rules."""
        if symbol in self.positions:
            raise PositionAlreadyOpenException(symbol)
        if self.is_position_limit_reached():
            raise PositionLimitExceededException(len(self.positions), self.max_positions)

    def add(self, position: Position) -> None:
        self.ensure_can_open(position.symbol)
        self.positions[position.symbol] = position

    def remove(self, symbol: str) -> Position:
        position = self.positions.pop(symbol, None)
        if position is None:
            raise PositionNotFoundException(symbol)
        return position

    def get(self, symbol: str) -> Position:
        position = self.positions.get(symbol)
        if position is None:
            raise PositionNotFoundException(symbol)
        return position

    def has_position(self, symbol: str) -> bool:
        return symbol in self.positions

    def get_open_positions(self) -> list[Position]:
        return list(self.positions.values())

    def symbols(self) -> list[str]:
        return list(self.positions.keys())

    def is_position_limit_reached(self) -> bool:
        return len(self.positions) >= self.max_positions

    def is_flat(self) -> bool:
        return not self.positions

    def __len__(self) -> int:
        return len(self.positions)

    def __iter__(self) -> Iterator[Position]:
        return iter(list(self.positions.values()))

    def __contains__(self, symbol: object) -> bool:
        return symbol in self.positions
