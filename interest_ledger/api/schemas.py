"""
Pydantic schemas for API requests and responses

Amounts and rates travel as base-10 integer strings because they routinely
exceed what JSON numbers carry safely.
"""

from typing import Optional
from pydantic import BaseModel, Field

from ..fixed_point import from_units, per_second_rate_to_annual
from ..ledger import AccountRecord


class AmountRequest(BaseModel):
    amount: str = Field(..., description="Amount in smallest units, or 'max' where accepted")


class TransferRequest(BaseModel):
    recipient: str
    amount: str = Field(..., description="Amount in smallest units")


class SetRateRequest(BaseModel):
    rate: Optional[str] = Field(None, description="Per-second rate scaled by 10**18")
    annual_rate: Optional[str] = Field(None, description="Simple annual rate as a decimal, e.g. '0.04'")


class RateModel(BaseModel):
    rate: str
    annual_rate: str

    @classmethod
    def from_rate(cls, rate: int) -> 'RateModel':
        return cls(rate=str(rate), annual_rate=str(per_second_rate_to_annual(rate)))


class AccountModel(BaseModel):
    holder: str
    balance: str
    balance_display: str
    principal: str
    rate: str
    last_accrual_time: int

    @classmethod
    def build(cls, holder: str, balance: int, record: Optional[AccountRecord]) -> 'AccountModel':
        record = record or AccountRecord(holder=holder)
        return cls(
            holder=holder,
            balance=str(balance),
            balance_display=str(from_units(balance)),
            principal=str(record.principal),
            rate=str(record.rate),
            last_accrual_time=record.last_accrual_time
        )
