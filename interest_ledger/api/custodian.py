"""
Custodian endpoints: deposits and redemptions of the backing asset
"""

from fastapi import APIRouter, Depends, status

from .dependencies import get_caller, get_system
from .schemas import AccountModel, AmountRequest
from ..fixed_point import parse_amount
from ..system import LedgerSystem


router = APIRouter()


@router.get("")
async def get_custodian(system: LedgerSystem = Depends(get_system)):
    """Custodian identity, bound ledger and custody holdings"""
    custodian = system.custodian
    return {
        "address": custodian.address,
        "ledger_address": custodian.get_ledger_address(),
        "custody_balance": str(custodian.custody_balance())
    }


@router.post("/deposits", status_code=status.HTTP_201_CREATED)
async def deposit(
    request: AmountRequest,
    caller: str = Depends(get_caller),
    system: LedgerSystem = Depends(get_system)
):
    """Deposit the asset and receive the same amount of ledger units"""
    amount = parse_amount(request.amount)
    system.custodian.deposit(caller, amount)
    ledger = system.ledger
    return {
        "amount": str(amount),
        "account": AccountModel.build(caller, ledger.balance_of(caller), ledger.get_account(caller)).model_dump(),
        "message": "Deposit accepted"
    }


@router.post("/redemptions")
async def redeem(
    request: AmountRequest,
    caller: str = Depends(get_caller),
    system: LedgerSystem = Depends(get_system)
):
    """Redeem ledger units for the asset; amount 'max' redeems everything"""
    amount = parse_amount(request.amount)
    redeemed = system.custodian.redeem(caller, amount)
    return {
        "amount": str(redeemed),
        "message": "Redemption paid"
    }


@router.post("/rewards", status_code=status.HTTP_201_CREATED)
async def fund_rewards(
    request: AmountRequest,
    caller: str = Depends(get_caller),
    system: LedgerSystem = Depends(get_system)
):
    """Add asset to custody to back accrued interest"""
    amount = parse_amount(request.amount)
    system.custodian.fund_rewards(caller, amount)
    return {
        "amount": str(amount),
        "custody_balance": str(system.custodian.custody_balance()),
        "message": "Rewards funded"
    }
