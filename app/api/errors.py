"""
Exception → HTTP mapping.
Bad caller input is a 400, downstream ledger failures a 500 carrying the cause.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.core.errors import KeeperInputError, LedgerError

logger = logging.getLogger(__name__)


async def _input_error(request: Request, exc: KeeperInputError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": str(exc)})


async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        f"{'.'.join(str(p) for p in err.get('loc', ()) if p != 'body')}: {err.get('msg')}"
        for err in exc.errors()
    ]
    return JSONResponse(status_code=400, content={"detail": "; ".join(errors)})


async def _ledger_error(request: Request, exc: LedgerError) -> JSONResponse:
    logger.error(f"Ledger call failed for {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"detail": str(exc)})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(KeeperInputError, _input_error)
    app.add_exception_handler(RequestValidationError, _validation_error)
    app.add_exception_handler(LedgerError, _ledger_error)
