"""
Ledger endpoints: balances, transfers, and the global rate
"""

from fastapi import APIRouter, Depends, HTTPException

from .dependencies import get_caller, get_system
from .schemas import AccountModel, RateModel, SetRateRequest, TransferRequest
from ..fixed_point import annual_rate_to_per_second, parse_amount
from ..system import LedgerSystem


router = APIRouter()


@router.get("")
async def get_ledger(system: LedgerSystem = Depends(get_system)):
    """Ledger identity, supply and current rate"""
    ledger = system.ledger
    return {
        "address": ledger.address,
        "total_supply": str(ledger.total_supply()),
        "interest_rate": RateModel.from_rate(ledger.get_interest_rate()).model_dump()
    }


@router.get("/rate")
async def get_rate(system: LedgerSystem = Depends(get_system)):
    """Current global interest rate"""
    return RateModel.from_rate(system.ledger.get_interest_rate()).model_dump()


@router.put("/rate")
async def set_rate(
    request: SetRateRequest,
    caller: str = Depends(get_caller),
    system: LedgerSystem = Depends(get_system)
):
    """Lower the global interest rate (rate administrator only)"""
    if (request.rate is None) == (request.annual_rate is None):
        raise HTTPException(status_code=400, detail="Provide exactly one of rate or annual_rate")

    if request.rate is not None:
        new_rate = parse_amount(request.rate)
    else:
        new_rate = annual_rate_to_per_second(request.annual_rate)

    system.ledger.set_interest_rate(caller, new_rate)
    return RateModel.from_rate(system.ledger.get_interest_rate()).model_dump()


@router.get("/accounts/{holder}")
async def get_account(holder: str, system: LedgerSystem = Depends(get_system)):
    """Current balance and stored record for a holder"""
    ledger = system.ledger
    return AccountModel.build(holder, ledger.balance_of(holder), ledger.get_account(holder)).model_dump()


@router.post("/transfers")
async def transfer(
    request: TransferRequest,
    caller: str = Depends(get_caller),
    system: LedgerSystem = Depends(get_system)
):
    """Move units from the caller to a recipient"""
    amount = parse_amount(request.amount)
    system.ledger.transfer(caller, request.recipient, amount)
    return {
        "sender": caller,
        "recipient": request.recipient,
        "amount": str(amount),
        "message": "Transfer completed"
    }
