"""
Ledger Error Taxonomy

Every failure surfaced by the ledger or the custodian is one of these.
None of them is retried or recovered from internally.
"""


class LedgerError(Exception):
    """Base class for all ledger and custody failures"""


class AuthorizationError(LedgerError):
    """Caller lacks supply control or rate administration"""

    def __init__(self, caller: str, privilege: str):
        self.caller = caller
        self.privilege = privilege
        super().__init__(f"Caller '{caller}' lacks {privilege} privilege")


class InsufficientBalanceError(LedgerError, ValueError):
    """Burn or transfer exceeds the settled principal"""

    def __init__(self, holder: str, requested: int, available: int):
        self.holder = holder
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient balance for '{holder}': requested {requested}, available {available}"
        )


class RateMonotonicityError(LedgerError, ValueError):
    """Attempt to raise the global interest rate"""

    def __init__(self, current_rate: int, requested_rate: int):
        self.current_rate = current_rate
        self.requested_rate = requested_rate
        super().__init__(
            f"Interest rate can only decrease: current {current_rate}, requested {requested_rate}"
        )


class ExternalTransferError(LedgerError):
    """Movement of the backing asset into or out of custody failed"""


class InvalidAmountError(LedgerError, ValueError):
    """Amount is zero, negative, non-integral or out of range"""
