"""
Request dependencies: the shared ledger system and the calling identity
"""

from typing import Optional
from fastapi import Header, HTTPException

from ..system import LedgerSystem


# Global ledger system instance, built on first use
_system: Optional[LedgerSystem] = None


def get_system() -> LedgerSystem:
    global _system
    if _system is None:
        _system = LedgerSystem()
    return _system


def get_caller(x_caller: Optional[str] = Header(None, alias="X-Caller")) -> str:
    """Identity of the caller, taken from the X-Caller header"""
    if not x_caller or not x_caller.strip():
        raise HTTPException(status_code=401, detail="X-Caller header is required")
    return x_caller.strip()
