# @role: Maps raw Kite holding/position records onto canonical Holding/Position models
# @used_by: kite_sync.py
# @filter_type: logic
# @tags: normalize, holdings, positions
from collections.abc import Mapping
from typing import Optional

from pydantic import BaseModel

from exceptions.exceptions import MalformedResponseException
from util.portfolio_schema import Holding, KiteHoldingRecord, KitePositionRecord, Position


def _as_record(raw, schema):
    if isinstance(raw, schema):
        return raw
    if isinstance(raw, BaseModel):
        raw = raw.model_dump()
    if not isinstance(raw, Mapping):
        raise MalformedResponseException(f"Expected a mapping for {schema.__name__}, got {type(raw).__name__}")
    return schema.model_validate(dict(raw))


def normalize_holding(raw, account_id: Optional[str] = None, account_label: Optional[str] = None) -> Holding:
    """
    Settled and T1 (pending settlement) quantities are summed. Until a live
    quote is applied the holding is valued at its cost basis, so P&L starts at 0.
    """
    record = _as_record(raw, KiteHoldingRecord)
    quantity = record.quantity + record.t1_quantity
    average_price = record.average_price

    return Holding(
        ticker=record.tradingsymbol,
        name=record.tradingsymbol,
        buy_price=average_price,
        quantity=quantity,
        average_buy_price=average_price,
        last_traded_price=average_price,
        daily_change=0,
        daily_change_percentage=0,
        day_range="N/A",
        volume=0,
        unrealized_pl=0,
        unrealized_pl_percentage=0,
        account_id=account_id,
        account_label=account_label,
    )


def normalize_position(raw, account_id: str) -> Position:
    record = _as_record(raw, KitePositionRecord)
    return Position(
        account_id=account_id,
        ticker=record.tradingsymbol,
        product=record.product,
        exchange=record.exchange,
        quantity=record.quantity,
        overnight_quantity=record.overnight_quantity,
        average_price=record.average_price,
        last_traded_price=record.last_price,
        pnl=record.pnl,
    )
