"""
Exchange rate payload: schema, validation and the acceptance band filter.
"""

import json
from datetime import date
from typing import List

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ratepoll.errors import DecodeError


class Rate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    no: str = ""
    effective_date: date = Field(alias="effectiveDate")
    mid: float


class ExchangeRatesSummary(BaseModel):
    table: str = ""
    currency: str = ""
    code: str = ""
    rates: List[Rate] = []


def is_valid_json(content: bytes) -> bool:
    """Check whether the payload is well-formed JSON, regardless of schema."""
    try:
        json.loads(content)
    except (ValueError, UnicodeDecodeError):
        return False
    return True


def decode_summary(content: bytes) -> ExchangeRatesSummary:
    """Parse the payload into an ExchangeRatesSummary or raise DecodeError."""
    try:
        return ExchangeRatesSummary.model_validate_json(content)
    except ValidationError as e:
        raise DecodeError(f"Failed to unmarshal request content: {e}") from e


def is_out_of_scope(mid: float, floor: float = 4.5, ceiling: float = 4.7) -> bool:
    # the band edges themselves are accepted
    return mid < floor or mid > ceiling


def format_effective_date(value: date) -> str:
    return f"{value.day}/{value.month}/{value.year}"


def rates_out_of_scope(summary: ExchangeRatesSummary, floor: float = 4.5, ceiling: float = 4.7) -> List[str]:
    """Return the formatted effective dates of rates outside the band, in payload order."""
    return [
        format_effective_date(rate.effective_date)
        for rate in summary.rates
        if is_out_of_scope(rate.mid, floor, ceiling)
    ]
