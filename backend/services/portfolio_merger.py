# @role: Combines holdings/positions from several Kite accounts into one view
# @used_by: kite_sync.py, portfolio_service.py
# @filter_type: logic
# @tags: merge, holdings, positions, weighted-average
from typing import Dict, Iterable, List, Tuple

from util.portfolio_schema import AccountPortfolio, CombinedPortfolio, Holding, Position
from util.util import latest_timestamp, safe_div

COMBINED_ACCOUNT_ID = "combined"


class _HoldingTotals:
    __slots__ = ("ticker", "name", "quantity", "invested", "current_value", "daily_change_value")

    def __init__(self, ticker: str, name: str):
        self.ticker = ticker
        self.name = name
        self.quantity = 0.0
        self.invested = 0.0
        self.current_value = 0.0
        self.daily_change_value = 0.0

    def add(self, holding: Holding):
        current_value = holding.last_traded_price * holding.quantity
        self.quantity += holding.quantity
        self.invested += holding.average_buy_price * holding.quantity
        self.current_value += current_value
        self.daily_change_value += (holding.daily_change_percentage / 100) * current_value

    def to_holding(self) -> Holding:
        average_buy_price = safe_div(self.invested, self.quantity)
        unrealized_pl = self.current_value - self.invested
        return Holding(
            ticker=self.ticker,
            name=self.name,
            buy_price=average_buy_price,
            quantity=self.quantity,
            average_buy_price=average_buy_price,
            last_traded_price=safe_div(self.current_value, self.quantity),
            daily_change=safe_div(self.daily_change_value, self.quantity),
            daily_change_percentage=safe_div(self.daily_change_value, self.current_value) * 100,
            day_range="N/A",
            volume=0,
            unrealized_pl=unrealized_pl,
            unrealized_pl_percentage=safe_div(unrealized_pl, self.invested) * 100,
        )


def merge_holdings(holdings: Iterable[Holding]) -> List[Holding]:
    """
    Collapse holdings sharing a ticker (exact match) into one quantity-weighted row.

    Output keeps the first-seen order of tickers. Zero divisors resolve to 0,
    so a group whose quantity nets to zero still yields a zero-valued row.
    """
    groups: Dict[str, _HoldingTotals] = {}
    for holding in holdings:
        totals = groups.get(holding.ticker)
        if totals is None:
            totals = groups[holding.ticker] = _HoldingTotals(holding.ticker, holding.name)
        totals.add(holding)
    return [totals.to_holding() for totals in groups.values()]


def merge_positions(positions: Iterable[Position]) -> List[Position]:
    """Merge on (exchange, product, ticker); quantities and broker PnL add up, prices are quantity-weighted."""
    groups: Dict[Tuple[str, str, str], dict] = {}
    for position in positions:
        entry = groups.get(position.key)
        if entry is None:
            entry = groups[position.key] = {
                "ticker": position.ticker,
                "product": position.product,
                "exchange": position.exchange,
                "quantity": 0.0,
                "overnight_quantity": 0.0,
                "average_price_total": 0.0,
                "last_price_total": 0.0,
                "pnl": 0.0,
            }
        entry["quantity"] += position.quantity
        entry["overnight_quantity"] += position.overnight_quantity
        entry["average_price_total"] += position.average_price * position.quantity
        entry["last_price_total"] += position.last_traded_price * position.quantity
        entry["pnl"] += position.pnl

    return [
        Position(
            account_id=COMBINED_ACCOUNT_ID,
            ticker=entry["ticker"],
            product=entry["product"],
            exchange=entry["exchange"],
            quantity=entry["quantity"],
            overnight_quantity=entry["overnight_quantity"],
            average_price=safe_div(entry["average_price_total"], entry["quantity"]),
            last_traded_price=safe_div(entry["last_price_total"], entry["quantity"]),
            pnl=entry["pnl"],
        )
        for entry in groups.values()
    ]


def combine_portfolios(portfolios: Iterable[AccountPortfolio]) -> CombinedPortfolio:
    """Merged view across accounts; fetched_at is the newest account timestamp, None if there is none."""
    portfolios = list(portfolios)
    holdings = [h for p in portfolios for h in p.holdings]
    positions = [pos for p in portfolios for pos in p.positions]
    return CombinedPortfolio(
        holdings=merge_holdings(holdings),
        positions=merge_positions(positions),
        fetched_at=latest_timestamp(p.fetched_at for p in portfolios),
    )
