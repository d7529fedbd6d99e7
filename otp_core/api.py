"""
OTP HTTP Endpoints
==================
FastAPI router exposing issuance, verification and sweeps.

Usage:
    service = await OTPService.from_config()
    app.include_router(create_otp_router(service))
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field
import structlog

from otp_core.exceptions import OTPError
from otp_core.otp.models import OTPKind, OTPStatus
from otp_core.service import IssueRequest, OTPService, VerifyRequest

logger = structlog.get_logger(__name__)

# OTPError.code -> HTTP status
ERROR_STATUS = {
    "invalid_argument": 400,
    "invalid_code": 401,
    "not_found": 404,
    "already_used": 409,
    "already_exists": 409,
    "conflict": 409,
    "expired": 410,
    "delivery_failed": 502,
    "persistence_error": 503,
    "hashing_error": 503,
}

ERROR_MESSAGES = {
    "invalid_argument": "Identity and code are required",
    "invalid_code": "Invalid OTP",
    "not_found": "No valid OTP found",
    "already_used": "OTP has already been used",
    "already_exists": "OTP request already exists",
    "conflict": "OTP request conflicts with another request",
    "expired": "OTP has expired",
    "delivery_failed": "OTP could not be delivered",
    "persistence_error": "Service temporarily unavailable",
    "hashing_error": "Service temporarily unavailable",
}


class IssueBody(BaseModel):
    identity: str = Field(min_length=1)
    org_id: str = Field(min_length=1)
    display_name: Optional[str] = None
    kind: OTPKind = OTPKind.LOGIN
    request_id: Optional[str] = None


class IssueResponse(BaseModel):
    record_id: str
    status: OTPStatus
    expires_at: datetime


class VerifyBody(BaseModel):
    identity: str = Field(min_length=1)
    code: str = Field(min_length=1)
    record_id: Optional[str] = None


class VerifyResponse(BaseModel):
    success: bool = True
    message: str = "OTP verified successfully"
    record_id: str
    proof_token: Optional[str] = None


class SweepResponse(BaseModel):
    deleted: int


def to_http_error(error: OTPError) -> HTTPException:
    """
    Map an OTPError to an HTTPException.

    Only the error kind reaches the client; record details stay in the logs.
    """
    status_code = ERROR_STATUS.get(error.code, 500)
    if status_code >= 500:
        logger.warning("OTP request failed", code=error.code, error=error.message)
    return HTTPException(
        status_code=status_code,
        detail={
            "error": error.code,
            "message": ERROR_MESSAGES.get(error.code, "Request failed"),
        },
    )


def create_otp_router(service: OTPService, prefix: str = "/otp") -> APIRouter:
    """
    Create the OTP router.

    Args:
        service: Wired OTP service
        prefix: URL prefix for all routes
    """
    router = APIRouter(prefix=prefix, tags=["otp"])

    @router.post("/requests", response_model=IssueResponse, status_code=201)
    async def issue_otp(body: IssueBody) -> IssueResponse:
        try:
            result = await service.handle_issue(IssueRequest(**body.model_dump()))
        except OTPError as e:
            raise to_http_error(e) from e
        return IssueResponse(
            record_id=result.record_id,
            status=result.status,
            expires_at=result.expires_at,
        )

    @router.post("/verify", response_model=VerifyResponse)
    async def verify_otp(body: VerifyBody) -> VerifyResponse:
        try:
            result = await service.handle_verify(VerifyRequest(**body.model_dump()))
        except OTPError as e:
            raise to_http_error(e) from e
        return VerifyResponse(record_id=result.record_id, proof_token=result.proof_token)

    @router.post("/sweep", response_model=SweepResponse)
    async def sweep_expired() -> SweepResponse:
        try:
            deleted = await service.sweep()
        except OTPError as e:
            raise to_http_error(e) from e
        return SweepResponse(deleted=deleted)

    return router
