# @role: Pydantic models for raw Kite records and normalized portfolio objects
# @used_by: normalizer.py, portfolio_merger.py, market_data.py, kite_sync.py, portfolio_service.py, portfolio_router.py
# @filter_type: utility
# @tags: schema, pydantic, portfolio
import math
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

def to_number(value) -> float:
    """Coerce a loosely typed numeric value to float; anything unusable becomes 0."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(number) or math.isinf(number):
        return 0.0
    return number


# --- Raw Kite records (ingestion boundary) ---

class KiteHoldingRecord(BaseModel):
    tradingsymbol: str = ""
    exchange: str = "NSE"
    instrument_token: float = 0
    last_price: float = 0
    average_price: float = 0
    quantity: float = 0
    pnl: float = 0
    t1_quantity: float = 0
    day_change: float = 0
    day_change_percentage: float = 0
    product: str = "CNC"
    collateral_quantity: float = 0
    collateral_type: Optional[str] = None

    @field_validator(
        "instrument_token", "last_price", "average_price", "quantity", "pnl", "t1_quantity",
        "day_change", "day_change_percentage", "collateral_quantity",
        mode="before",
    )
    @classmethod
    def _numeric(cls, value):
        return to_number(value)

    @field_validator("tradingsymbol", "exchange", "product", mode="before")
    @classmethod
    def _text(cls, value, info):
        if value is None:
            return cls.model_fields[info.field_name].default
        return str(value)

    @field_validator("collateral_type", mode="before")
    @classmethod
    def _optional_text(cls, value):
        return None if value is None else str(value)


class KitePositionRecord(BaseModel):
    tradingsymbol: str = ""
    product: str = "NRML"
    exchange: str = "NSE"
    quantity: float = 0
    overnight_quantity: float = 0
    average_price: float = 0
    last_price: float = 0
    pnl: float = 0

    @field_validator(
        "quantity", "overnight_quantity", "average_price", "last_price", "pnl",
        mode="before",
    )
    @classmethod
    def _numeric(cls, value):
        return to_number(value)

    @field_validator("tradingsymbol", "exchange", "product", mode="before")
    @classmethod
    def _text(cls, value, info):
        if value is None:
            return cls.model_fields[info.field_name].default
        return str(value)


# --- Normalized portfolio objects ---

class Holding(BaseModel):
    ticker: str
    name: str = ""
    buy_price: float = 0
    quantity: float = 0
    average_buy_price: float = 0
    last_traded_price: float = 0
    daily_change: float = 0
    daily_change_percentage: float = 0
    day_range: str = "N/A"
    volume: float = 0
    unrealized_pl: float = 0
    unrealized_pl_percentage: float = 0
    account_id: Optional[str] = None
    account_label: Optional[str] = None


class Position(BaseModel):
    account_id: str
    ticker: str
    product: str = "NRML"
    exchange: str = "NSE"
    quantity: float = 0
    overnight_quantity: float = 0
    average_price: float = 0
    last_traded_price: float = 0
    pnl: float = 0

    @property
    def key(self):
        return (self.exchange, self.product, self.ticker)


class AccountPortfolio(BaseModel):
    account_id: str
    account_label: str
    holdings: List[Holding] = Field(default_factory=list)
    positions: List[Position] = Field(default_factory=list)
    fetched_at: Optional[str] = None
    last_synced_at: Optional[str] = None
    needs_sync: bool = False
    sync_error: Optional[str] = None


class CombinedPortfolio(BaseModel):
    holdings: List[Holding] = Field(default_factory=list)
    positions: List[Position] = Field(default_factory=list)
    fetched_at: Optional[str] = None


class AccountError(BaseModel):
    account_id: Optional[str] = None
    message: str


class PortfolioView(BaseModel):
    combined: CombinedPortfolio
    accounts: List[AccountPortfolio] = Field(default_factory=list)
    errors: List[AccountError] = Field(default_factory=list)
    reauth_required_accounts: List[str] = Field(default_factory=list)


class SyncStatus(BaseModel):
    account_id: str
    last_sync_at: Optional[str] = None
    last_error: Optional[str] = None
    last_error_at: Optional[str] = None


class StoredToken(BaseModel):
    token: str
    updated_at: str
