import logging

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from lotledger.api.routes.storage import router as storage_router
from lotledger.api.routes.warehouses import router as warehouses_router
from lotledger.core.config import settings
from lotledger.services.errors import (
    ConcurrencyConflictError,
    InsufficientSupplyError,
    LedgerError,
    LotStateError,
    NotFoundError,
    OverpaymentError,
    RateScheduleMissingError,
)

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

ERROR_STATUS: dict[type[LedgerError], int] = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    InsufficientSupplyError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ConcurrencyConflictError: status.HTTP_409_CONFLICT,
    RateScheduleMissingError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    LotStateError: status.HTTP_409_CONFLICT,
    OverpaymentError: status.HTTP_422_UNPROCESSABLE_ENTITY,
}

app = FastAPI(title=settings.app_name)
app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(warehouses_router)
app.include_router(storage_router)


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
    status_code = ERROR_STATUS.get(type(exc), status.HTTP_400_BAD_REQUEST)
    if isinstance(exc, ConcurrencyConflictError):
        logger.warning("%s %s conflicted: %s", request.method, request.url.path, exc.detail)
    return JSONResponse(status_code=status_code, content={"detail": exc.detail, "code": exc.code})


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": str(exc), "code": "invalid_request"})


@app.get("/health", tags=["System"])
def health_check():
    return {"status": "ok"}
