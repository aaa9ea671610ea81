"""
IVChain HTTP API.

Thin FastAPI layer over IVOracleService. Rejected submissions come back as
their SubmissionResult with a status picked from the reject code.
"""

from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from . import config
from .errors import NotFoundError, RejectCode
from .logging_config import configure_logging, set_request_id
from .models import StatsResponse, SubmitRequest
from .service import IVOracleService

app = FastAPI(title="IVChain Oracle")

SERVICE: Optional[IVOracleService] = None

REJECT_STATUS = {
    RejectCode.DUPLICATE_RECORD: 409,
    RejectCode.INVALID_SIGNATURE: 401,
}


def set_service(service: Optional[IVOracleService]) -> None:
    """Install the service instance the routes use (tests, embedding)."""
    global SERVICE
    SERVICE = service


def get_service() -> IVOracleService:
    global SERVICE
    if SERVICE is None:
        SERVICE = IVOracleService.from_config()
    return SERVICE


@app.on_event("startup")
def _startup():
    configure_logging(config.LOG_LEVEL, json_format=config.LOG_JSON)
    get_service()


@app.middleware("http")
async def _request_id(request: Request, call_next):
    rid = set_request_id(request.headers.get("X-Request-ID"))
    response = await call_next(request)
    response.headers["X-Request-ID"] = rid
    return response


@app.post("/submit")
def submit(req: SubmitRequest):
    result = get_service().submit(req.identity, req.public_key, req.iv, req.timestamp, req.signature)
    if result.accepted:
        return result.to_dict()
    return JSONResponse(status_code=REJECT_STATUS.get(result.code, 422), content=result.to_dict())


@app.get("/records/{tx_id}")
def get_record(tx_id: str):
    try:
        block = get_service().fetch(tx_id)
    except NotFoundError:
        raise HTTPException(404, "NOT_FOUND")
    return block.to_dict(include_units=True)


@app.get("/verify")
def verify():
    return get_service().verify_chain().to_dict()


@app.get("/stats", response_model=StatsResponse)
def stats():
    service = get_service()
    return StatsResponse(
        total_records=service.total_records(),
        height=service.ledger.height(),
        tip_hash=service.ledger.tip_hash(),
        oracle_signer=service.oracle_signer,
    )
