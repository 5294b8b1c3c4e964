"""
Trade Log - append-only, chronological record of trades for one engine
"""

import math
from collections import Counter
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any

from ..exceptions import InternalFaultException, InvalidInputException
from .trade import Trade, TradeType

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 500


@dataclass(frozen=True)
class TradePage:
    """One page of a filtered, newest-first trade query."""

    trades: list[Trade]
    page: int
    limit: int
    total: int

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.total else 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "trades": [trade.to_dict() for trade in self.trades],
            "pagination": {
                "page": self.page,
                "limit": self.limit,
                "total": self.total,
                "pages": self.pages,
            },
        }


class TradeLog:
    """
    Append-only trade sequence.

    A close trade is only accepted when an earlier open trade for the same
    symbol has not yet been matched by a close.
    """

    def __init__(self) -> None:
        self._trades: list[Trade] = []
        self._unmatched_opens: Counter[str] = Counter()

    def append(self, trade: Trade) -> None:
        if trade.trade_type is TradeType.CLOSE:
            if self._unmatched_opens[trade.symbol] <= 0:
                raise InternalFaultException(
                    f"Close trade for {trade.symbol} has no matching open trade",
                    {"symbol": trade.symbol},
                )
            self._unmatched_opens[trade.symbol] -= 1
        else:
            self._unmatched_opens[trade.symbol] += 1
        self._trades.append(trade)

    def closed_trades(self) -> list[Trade]:
        return [t for t in self._trades if t.is_close]

    def realized_pnl(self) -> Decimal:
        return sum((t.pnl for t in self._trades if t.pnl is not None), Decimal("0"))

    def realized_pnl_on(self, day: date) -> Decimal:
        """Sum of P&L from trades closed on ``day``."""
        return sum(
            (
                t.pnl
                for t in self._trades
                if t.pnl is not None and t.exit_time is not None and t.exit_time.date() == day
            ),
            Decimal("0"),
        )

    def query(
        self,
        symbol: str | None = None,
        trade_type: TradeType | str | None = None,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> TradePage:
        """Filter by symbol and type, sort newest first, and paginate."""
        if page < 1:
            raise InvalidInputException("Page must be at least 1", field="page", value=page)
        if not 1 <= limit <= MAX_PAGE_SIZE:
            raise InvalidInputException(
                f"Limit must be between 1 and {MAX_PAGE_SIZE}", field="limit", value=limit
            )
        if isinstance(trade_type, str):
            try:
                trade_type = TradeType(trade_type.lower())
            except ValueError:
                raise InvalidInputException(
                    "Type must be 'open' or 'close'", field="type", value=trade_type
                ) from None

        matches = self._trades
        if symbol:
            wanted = symbol.upper().strip()
            matches = [t for t in matches if t.symbol == wanted]
        if trade_type is not None:
            matches = [t for t in matches if t.trade_type is trade_type]

        # Ties keep newest-appended first
        ordered = sorted(reversed(matches), key=lambda t: t.timestamp, reverse=True)
        start = (page - 1) * limit
        return TradePage(
            trades=ordered[start : start + limit], page=page, limit=limit, total=len(ordered)
        )

    def __len__(self) -> int:
        return len(self._trades)

    def __iter__(self) -> Iterator[Trade]:
        return iter(list(self._trades))

    def __getitem__(self, index: int) -> Trade:
        return self._trades[index]
