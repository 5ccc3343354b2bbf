"""
Interest Ledger API Application Factory
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .. import __version__
from ..errors import (
    AuthorizationError, ExternalTransferError, InsufficientBalanceError,
    InvalidAmountError, LedgerError, RateMonotonicityError
)
from .custodian import router as custodian_router
from .ledger import router as ledger_router


ERROR_STATUS = {
    AuthorizationError: 403,
    InsufficientBalanceError: 400,
    InvalidAmountError: 400,
    RateMonotonicityError: 400,
    ExternalTransferError: 502,
}


async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
    status_code = next(
        (code for error_type, code in ERROR_STATUS.items() if isinstance(exc, error_type)),
        400
    )
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "error": type(exc).__name__}
    )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application"""
    app = FastAPI(
        title="Interest Ledger API",
        description="Interest-accruing ledger with a custodial deposit and redemption facade",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc"
    )

    app.add_exception_handler(LedgerError, ledger_error_handler)

    app.include_router(ledger_router, prefix="/ledger", tags=["Ledger"])
    app.include_router(custodian_router, prefix="/custodian", tags=["Custodian"])

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "service": "interest_ledger_api",
            "version": __version__
        }

    return app
