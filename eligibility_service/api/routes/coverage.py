"""
Coverage Administration Endpoints.

Search, create, read, replace and soft delete coverage records. Writes
invalidate the affected member's cached eligibility projections.
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status

from eligibility_service.api.deps import get_client_ip, get_coverage_admin, get_user_id
from eligibility_service.core.enums import CoverageStatus
from eligibility_service.schemas.coverage import CoverageCreate, CoverageRecord, CoverageUpdate
from eligibility_service.schemas.eligibility import ResponseMessage
from eligibility_service.services.coverage_admin import DEFAULT_PAGE_SIZE, CoverageAdminService

router = APIRouter(
    prefix="/api/v1/coverage",
    tags=["coverage"],
)

NOT_FOUND_RESPONSES = {status.HTTP_404_NOT_FOUND: {"model": ResponseMessage}}


@router.get("", response_model=list[CoverageRecord])
async def search_coverage(
    member_id: Optional[str] = Query(None, max_length=50),
    payer_id: Optional[str] = Query(None, max_length=50),
    coverage_status: Optional[CoverageStatus] = Query(None, alias="status"),
    effective_date: Optional[date] = Query(None, description="Effective on or before"),
    count: int = Query(DEFAULT_PAGE_SIZE, alias="_count", description="Results per page (1-100)"),
    offset: int = Query(0, alias="_offset", ge=0),
    admin: CoverageAdminService = Depends(get_coverage_admin),
    client_ip: Optional[str] = Depends(get_client_ip),
    user_id: Optional[str] = Depends(get_user_id),
) -> list[CoverageRecord]:
    """Search coverage records, newest first."""
    return await admin.search(
        member_id=member_id,
        payer_id=payer_id,
        status=coverage_status.value if coverage_status else None,
        effective_date=effective_date,
        count=count,
        offset=offset,
        user_id=user_id,
        client_ip=client_ip,
    )


@router.post("", response_model=CoverageRecord, status_code=status.HTTP_201_CREATED)
async def create_coverage(
    payload: CoverageCreate,
    response: Response,
    admin: CoverageAdminService = Depends(get_coverage_admin),
    client_ip: Optional[str] = Depends(get_client_ip),
    user_id: Optional[str] = Depends(get_user_id),
) -> CoverageRecord:
    """Create a coverage record for a member."""
    coverage = await admin.create(payload, user_id=user_id, client_ip=client_ip)
    response.headers["Location"] = f"{router.prefix}/{coverage.id}"
    return coverage


@router.get("/{coverage_id}", response_model=CoverageRecord, responses=NOT_FOUND_RESPONSES)
async def get_coverage(
    coverage_id: str,
    admin: CoverageAdminService = Depends(get_coverage_admin),
) -> CoverageRecord:
    return await admin.get(coverage_id)


@router.put("/{coverage_id}", response_model=CoverageRecord, responses=NOT_FOUND_RESPONSES)
async def update_coverage(
    coverage_id: str,
    payload: CoverageUpdate,
    admin: CoverageAdminService = Depends(get_coverage_admin),
    client_ip: Optional[str] = Depends(get_client_ip),
    user_id: Optional[str] = Depends(get_user_id),
) -> CoverageRecord:
    """Replace a coverage record."""
    return await admin.update(coverage_id, payload, user_id=user_id, client_ip=client_ip)


@router.delete(
    "/{coverage_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses=NOT_FOUND_RESPONSES,
)
async def delete_coverage(
    coverage_id: str,
    admin: CoverageAdminService = Depends(get_coverage_admin),
    client_ip: Optional[str] = Depends(get_client_ip),
    user_id: Optional[str] = Depends(get_user_id),
) -> Response:
    """Soft delete a coverage record (status becomes ``deleted``)."""
    await admin.delete(coverage_id, user_id=user_id, client_ip=client_ip)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
