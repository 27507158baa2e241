"""
HTTP interface for rootpolicy.

POST /verify  evaluate a policy document sent as the raw request body
GET  /trust   evaluate the configured policy file
GET  /healthz liveness and configuration checks

Evaluations that complete return 200 with the verdict, including EXPIRED
and UNTRUSTED. Documents that cannot be evaluated return 4xx.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, Field

from . import config
from .errors import CertificateError, ParseError, ThresholdError
from .evaluator import EvaluationResult, PolicyEvaluator, Verdict
from .logging_config import audit_log, set_request_id
from .util import parse_timestamp, utc_now

app = FastAPI(title="Root Policy Verifier")

evaluator = PolicyEvaluator(max_workers=config.MAX_WORKERS)


class VerifyResponse(BaseModel):
    verdict: Verdict
    reason: Optional[str] = None
    threshold: Optional[int] = None
    valid_keyids: List[str] = Field(default_factory=list)
    remaining_seconds: Optional[float] = None
    signed: Optional[Dict[str, Any]] = None


@app.middleware("http")
async def _request_id(request: Request, call_next):
    request_id = set_request_id(request.headers.get("x-request-id"))
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


def _evaluation_time(now: Optional[str]) -> datetime:
    if not now:
        return utc_now()
    try:
        return parse_timestamp(now)
    except ValueError as e:
        raise HTTPException(400, f"Invalid 'now': {e}")


def _evaluate(raw: bytes, now: datetime, source: str) -> VerifyResponse:
    try:
        result: EvaluationResult = evaluator.evaluate(raw, now)
    except ParseError as e:
        audit_log.policy_rejected(e.error_code, e.message, source=source)
        raise HTTPException(400, e.to_dict())
    except CertificateError as e:
        audit_log.policy_rejected(e.error_code, e.message, source=source)
        raise HTTPException(422, e.to_dict())
    except ThresholdError as e:
        audit_log.policy_rejected(e.error_code, e.message, source=source)
        return VerifyResponse(verdict=Verdict.UNTRUSTED, reason=e.message)

    audit_log.policy_evaluated(
        namespace=result.signed.namespace if result.signed else None,
        verdict=result.verdict.value,
        threshold=result.threshold,
        valid_keyids=result.valid_keyids,
        version=result.signed.version if result.signed else None,
        reason=result.reason,
    )

    return VerifyResponse(
        verdict=result.verdict,
        reason=result.reason,
        threshold=result.threshold,
        valid_keyids=sorted(result.valid_keyids),
        remaining_seconds=result.remaining.total_seconds(),
        signed=result.signed.model_dump(mode="json") if result.signed else None,
    )


@app.get("/healthz")
def healthz():
    return {"status": "ok", "env": config.ENV, "checks": config.validate_config()}


@app.post("/verify", response_model=VerifyResponse)
async def verify(request: Request, now: Optional[str] = None):
    raw = await request.body()
    if len(raw) > config.MAX_DOCUMENT_BYTES:
        raise HTTPException(413, "DOCUMENT_TOO_LARGE")
    # Certificate parsing and ECDSA checks stay off the event loop
    return await run_in_threadpool(_evaluate, raw, _evaluation_time(now), "request")


@app.get("/trust", response_model=VerifyResponse)
def trust(now: Optional[str] = None):
    try:
        raw = config.load_policy_bytes()
    except FileNotFoundError:
        raise HTTPException(503, "POLICY_NOT_CONFIGURED")
    return _evaluate(raw, _evaluation_time(now), source=config.POLICY_PATH)
