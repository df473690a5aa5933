"""
Eligibility API Endpoints.

Provides:
- Real-time eligibility check
- Member coverage listing
- Coverage verification with cost estimates
- Member benefit listing

Negative outcomes (member not found, no coverage) are HTTP 200 answers with
a message; only store failures, timeouts and malformed requests produce
error statuses.
"""

from datetime import date
from typing import Annotated, Optional, Union

from fastapi import APIRouter, Depends, Path, Query, status
from fastapi.responses import JSONResponse

from eligibility_service.api.config import Settings
from eligibility_service.api.deps import (
    enforce_response_budget,
    get_app_settings,
    get_client_ip,
    get_eligibility_engine,
    get_user_id,
    message_response,
)
from eligibility_service.core.enums import MessageType
from eligibility_service.schemas.coverage import CoverageRecord
from eligibility_service.schemas.eligibility import (
    BenefitInformation,
    CoverageVerificationRequest,
    CoverageVerificationResponse,
    EligibilityRequest,
    EligibilityResponse,
    ResponseMessage,
)
from eligibility_service.services.eligibility_engine import (
    NO_BENEFITS_FOUND,
    NO_COVERAGE_FOUND,
    EligibilityEngine,
)
from eligibility_service.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(
    prefix="/api/v1/eligibility",
    tags=["eligibility"],
)

MemberID = Annotated[str, Path(min_length=1, max_length=50, description="Member national ID")]

NOT_FOUND_RESPONSES = {status.HTTP_404_NOT_FOUND: {"model": ResponseMessage}}


@router.post("/check", response_model=EligibilityResponse)
async def check_eligibility(
    request: EligibilityRequest,
    engine: EligibilityEngine = Depends(get_eligibility_engine),
    settings: Settings = Depends(get_app_settings),
    client_ip: Optional[str] = Depends(get_client_ip),
    user_id: Optional[str] = Depends(get_user_id),
) -> EligibilityResponse:
    """
    Check member eligibility for a provider and service date.

    Returns:
        Eligibility decision with benefits, limitations and messages.
    """
    if not request.requested_by and user_id:
        request.requested_by = user_id

    return await enforce_response_budget(
        engine.check_eligibility(request, client_ip=client_ip),
        settings,
    )


@router.get(
    "/member/{member_id}/coverage",
    response_model=list[CoverageRecord],
    responses=NOT_FOUND_RESPONSES,
)
async def get_member_coverage(
    member_id: MemberID,
    effective_date: Optional[date] = Query(None, description="Coverage date (default: today)"),
    engine: EligibilityEngine = Depends(get_eligibility_engine),
    settings: Settings = Depends(get_app_settings),
    client_ip: Optional[str] = Depends(get_client_ip),
    user_id: Optional[str] = Depends(get_user_id),
) -> Union[list[CoverageRecord], JSONResponse]:
    """List the member's coverages in force on a date."""
    coverages = await enforce_response_budget(
        engine.get_member_coverage(
            member_id, effective_date, user_id=user_id, client_ip=client_ip
        ),
        settings,
    )
    if not coverages:
        return message_response(
            status.HTTP_404_NOT_FOUND,
            NO_COVERAGE_FOUND,
            "No active coverage found for the specified member and date",
            message_type=MessageType.INFORMATION,
        )
    return coverages


@router.post(
    "/member/{member_id}/coverage/verify",
    response_model=CoverageVerificationResponse,
)
async def verify_coverage(
    request: CoverageVerificationRequest,
    member_id: MemberID,
    engine: EligibilityEngine = Depends(get_eligibility_engine),
    settings: Settings = Depends(get_app_settings),
    client_ip: Optional[str] = Depends(get_client_ip),
    user_id: Optional[str] = Depends(get_user_id),
) -> CoverageVerificationResponse:
    """
    Verify coverage for specific services.

    The result is an advisory estimate valid until ``valid_until``.
    """
    return await enforce_response_budget(
        engine.verify_coverage(member_id, request, user_id=user_id, client_ip=client_ip),
        settings,
    )


@router.get(
    "/member/{member_id}/benefits",
    response_model=list[BenefitInformation],
    responses=NOT_FOUND_RESPONSES,
)
async def get_member_benefits(
    member_id: MemberID,
    service_category: Optional[str] = Query(None, max_length=50, description="Service category filter"),
    engine: EligibilityEngine = Depends(get_eligibility_engine),
    settings: Settings = Depends(get_app_settings),
    client_ip: Optional[str] = Depends(get_client_ip),
    user_id: Optional[str] = Depends(get_user_id),
) -> Union[list[BenefitInformation], JSONResponse]:
    """List the member's current benefit schedule."""
    benefits = await enforce_response_budget(
        engine.get_member_benefits(
            member_id, service_category, user_id=user_id, client_ip=client_ip
        ),
        settings,
    )
    if not benefits:
        return message_response(
            status.HTTP_404_NOT_FOUND,
            NO_BENEFITS_FOUND,
            "No benefits found for the specified member",
            message_type=MessageType.INFORMATION,
        )
    return benefits
