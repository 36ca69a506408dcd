# @role: Live quote lookup and holding enrichment via Yahoo Finance
# @used_by: portfolio_service.py, dependencies.py
# @filter_type: logic
# @tags: quotes, yfinance, enrichment
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

import yfinance as yf

from exceptions.exceptions import DataUnavailableException
from util.portfolio_schema import Holding, to_number
from util.util import safe_div

logger = logging.getLogger(__name__)

MARKET_SUFFIXES = (".NS", ".BO")


@dataclass(frozen=True)
class Quote:
    symbol: str
    last_price: float
    change: float
    change_percent: float


def yahoo_quote(symbol: str) -> Quote:
    """Fetch one symbol from Yahoo Finance. Raises DataUnavailableException when there is no price."""
    info = yf.Ticker(symbol).fast_info
    last_price = to_number(info.last_price)
    previous_close = to_number(info.previous_close)
    if last_price <= 0:
        raise DataUnavailableException(f"No market price for {symbol}")

    change = last_price - previous_close if previous_close else 0.0
    return Quote(
        symbol=symbol,
        last_price=last_price,
        change=change,
        change_percent=safe_div(change, previous_close) * 100,
    )


def candidate_symbols(ticker: str) -> List[str]:
    """Exchange-qualified tickers are used as-is; bare ones try NSE, then BSE."""
    if "." in ticker:
        return [ticker]
    return [f"{ticker}{suffix}" for suffix in MARKET_SUFFIXES]


def apply_quote(holding: Holding, quote: Quote) -> Holding:
    last_traded_price = quote.last_price
    invested = holding.average_buy_price * holding.quantity
    unrealized_pl = last_traded_price * holding.quantity - invested
    return holding.model_copy(update={
        "last_traded_price": last_traded_price,
        "daily_change": quote.change,
        "daily_change_percentage": quote.change_percent,
        "unrealized_pl": unrealized_pl,
        "unrealized_pl_percentage": safe_div(unrealized_pl, invested) * 100,
    })


class QuoteService:
    def __init__(self, lookup: Callable[[str], Quote] = None, max_workers: int = 8):
        self.lookup = lookup or yahoo_quote
        self.max_workers = max_workers

    def fetch_quote(self, ticker: str) -> Optional[Quote]:
        symbols = candidate_symbols(ticker)
        for index, symbol in enumerate(symbols):
            try:
                return self.lookup(symbol)
            except Exception as e:
                if index + 1 < len(symbols):
                    logger.warning(f"⚠️ Could not fetch {symbol}, trying {symbols[index + 1]}")
                else:
                    logger.error(f"❌ Failed to fetch quote for {ticker}: {e}")
        return None

    def fetch_quotes(self, tickers) -> Dict[str, Optional[Quote]]:
        """One lookup per distinct ticker; failed tickers map to None."""
        unique = list(dict.fromkeys(tickers))
        if not unique:
            return {}
        with ThreadPoolExecutor(max_workers=max(1, min(self.max_workers, len(unique)))) as executor:
            quotes = list(executor.map(self.fetch_quote, unique))
        return dict(zip(unique, quotes))

    def apply_market_quotes(self, holdings: List[Holding]) -> List[Holding]:
        """
        Return holdings priced at live quotes. A ticker without a quote keeps
        its current (cost-basis) values; the batch is never aborted.
        """
        quotes = self.fetch_quotes(h.ticker for h in holdings)
        enriched = []
        for holding in holdings:
            quote = quotes.get(holding.ticker)
            enriched.append(apply_quote(holding, quote) if quote else holding)

        priced = sum(1 for q in quotes.values() if q)
        logger.info("Applied quotes to %d/%d tickers", priced, len(quotes))
        return enriched
