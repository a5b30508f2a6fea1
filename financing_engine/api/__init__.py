"""
Financing Engine API Application Factory
"""

import logging
from typing import Optional

import uvicorn

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .accounts import router as accounts_router
from .categories import router as categories_router
from .loans import router as loans_router
from .payments import router as payments_router
from .schedules import router as schedules_router
from .. import __version__
from ..config import get_config
from ..errors import (
    DuplicateInstallmentError, ExceedsOutstandingBalanceError, FinancingError,
    InsufficientAmountError, LinkedTransactionExistsError, NegativeBalanceError,
    NoExpenseCategoryError, NotFoundError, ValidationError
)
from ..logging_config import configure_from

logger = logging.getLogger(__name__)

# Checked in order; subclasses resolve through their base
STATUS_BY_ERROR = (
    (NotFoundError, 404),
    (ValidationError, 400),
    (DuplicateInstallmentError, 409),
    (LinkedTransactionExistsError, 409),
    (NegativeBalanceError, 422),
    (ExceedsOutstandingBalanceError, 422),
    (InsufficientAmountError, 422),
    (NoExpenseCategoryError, 422),
)


def status_for(error: FinancingError) -> int:
    for error_type, status_code in STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return status_code
    return 500


async def financing_error_handler(request: Request, exc: FinancingError) -> JSONResponse:
    status_code = status_for(exc)
    if status_code == 500:
        logger.error("Internal error on %s %s: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=status_code, content=exc.to_dict())


def create_app() -> FastAPI:
    """Create and configure the FastAPI application"""
    app = FastAPI(
        title="Financing Engine API",
        description="Loan amortization schedules and atomic payment application",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc"
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(FinancingError, financing_error_handler)

    app.include_router(schedules_router, prefix="/schedules", tags=["Schedules"])
    app.include_router(accounts_router, prefix="/accounts", tags=["Accounts"])
    app.include_router(categories_router, prefix="/categories", tags=["Categories"])
    app.include_router(loans_router, prefix="/loans", tags=["Loans"])
    app.include_router(payments_router, prefix="/payments", tags=["Payments"])

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "service": "financing_engine_api",
            "version": __version__
        }

    return app


def run_server(host: Optional[str] = None, port: Optional[int] = None, debug: bool = False):
    """Run the FastAPI server"""
    config = get_config()
    configure_from(config)
    uvicorn.run(
        "financing_engine.api:create_app",
        factory=True,
        host=host or config.api_host,
        port=port or config.api_port,
        reload=debug,
        log_level=config.log_level.lower()
    )
