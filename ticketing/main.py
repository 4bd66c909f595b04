import logging
import uuid
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from redis.asyncio import Redis
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool
import uvicorn

from .auth import get_current_user_id
from .config import Settings, get_settings
from .db import Base, engine, get_db
from .deps import build_codec, get_codec, get_redis
from .errors import ErrorKind, TicketError
from .issuer import issue_ticket
from .models import AuditLog, EventRegistration
from .rate_limit import token_bucket
from .security import TicketCodec
from .verifier import redeem_ticket

logging.basicConfig(level=get_settings().log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    Base.metadata.create_all(bind=engine)
    yield


app = FastAPI(title="Club Event Ticketing", version="1.0.0", lifespan=lifespan)


@app.exception_handler(TicketError)
async def ticket_error_handler(request: Request, exc: TicketError):
    if exc.kind is not ErrorKind.INTERNAL:
        logger.info("%s %s rejected: %s (%s)", request.method, request.url.path, exc.kind.value, exc.detail)
    return JSONResponse(status_code=exc.kind.status_code, content={"error": exc.kind.public_message})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"error": "Invalid request"})


class GenerateQrReq(BaseModel):
    registration_id: str = Field(alias="registrationId")


class CheckInReq(BaseModel):
    qr_code: str = Field(alias="qrCode")


def _iso(value) -> Optional[str]:
    return value.isoformat() if value is not None else None


def registration_payload(r: EventRegistration) -> dict:
    return {
        "id": r.id,
        "event_id": r.event_id,
        "user_id": r.user_id,
        "qr_code": r.qr_code,
        "checked_in_at": _iso(r.checked_in_at),
        "attended": r.attended,
        "registered_at": _iso(r.registered_at),
    }


@app.get("/health")
async def health_check():
    return {"status": "healthy"}


@app.post("/generate-qr-code")
def generate_qr_code(
    req: GenerateQrReq,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    codec: TicketCodec = Depends(get_codec),
):
    token = issue_ticket(db, codec, user_id, req.registration_id)
    return {"qrCode": token}


@app.post("/check-in-attendee")
async def check_in_attendee(
    req: CheckInReq,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    redis: Optional[Redis] = Depends(get_redis),
    settings: Settings = Depends(get_settings),
):
    decision_id = str(uuid.uuid4())
    ip = request.client.host if request.client else "unknown"
    ua = request.headers.get("user-agent", "")

    # Rate limit per checker
    if redis is not None:
        capacity = settings.check_in_rate_limit
        allowed = await token_bucket(redis, key=f"checkin:{user_id}", capacity=capacity, refill_per_sec=capacity / 60)
        if not allowed:
            await run_in_threadpool(_audit, db, decision_id, ip, ua, user_id, None, "REJECTED", ErrorKind.RATE_LIMITED.value)
            raise TicketError(ErrorKind.RATE_LIMITED, f"bucket empty for {user_id}")

    # Database work stays off the event loop
    return await run_in_threadpool(_check_in, db, settings, user_id, req.qr_code, decision_id, ip, ua)


def _check_in(db: Session, settings: Settings, user_id: str, qr_code: str, decision_id: str, ip: str, ua: str) -> dict:
    try:
        codec = build_codec(settings)
        result = redeem_ticket(db, codec, user_id, qr_code)
    except TicketError as e:
        _audit(db, decision_id, ip, ua, user_id, e.registration_id, "REJECTED", e.kind.value)
        raise

    registration = registration_payload(result.registration)
    if result.first_check_in:
        _audit(db, decision_id, ip, ua, user_id, result.registration.id, "ACCEPTED", "OK")
        return {"success": True, "registration": registration}

    _audit(db, decision_id, ip, ua, user_id, result.registration.id, "DUPLICATE", "ALREADY_CHECKED_IN")
    return {"success": False, "error": "Already checked in", "registration": registration}


def _audit(
    db: Session,
    decision_id: str,
    ip: str,
    ua: str,
    actor_id: str,
    registration_id: Optional[str],
    status: str,
    reason: str,
):
    try:
        db.add(AuditLog(
            decision_id=decision_id,
            ip=ip,
            user_agent=ua,
            actor_id=actor_id,
            registration_id=registration_id,
            status=status,
            reason_code=reason,
        ))
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("failed to write audit log for decision %s", decision_id)


def run():
    settings = get_settings()
    uvicorn.run("ticketing.main:app", host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    run()
