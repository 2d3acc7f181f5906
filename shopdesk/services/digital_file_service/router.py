from typing import List

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from shopdesk.shared.config import get_db, settings
from shopdesk.shared.security import get_current_admin, limiter

from .schemas import (
    AccessCheckResponse,
    DigitalFileCreate,
    DigitalFileResponse,
    DigitalFileUpdate,
    DownloadResponse,
    DownloadStatsResponse,
    MessageResponse,
)
from .service import DigitalFileService

router = APIRouter(tags=["Digital Files"])

# --- Public, purchase-gated ---

@router.get("/download/{product_id}", response_model=DownloadResponse)
@limiter.limit(settings.DOWNLOAD_RATE_LIMIT)
async def download(
    request: Request,
    product_id: int,
    email: str | None = Query(default=None),
    db: AsyncSession = Depends(get_db),
):
    return await DigitalFileService.download(db, product_id, email)


@router.get("/check/{product_id}", response_model=AccessCheckResponse)
async def check_access(
    product_id: int,
    email: str | None = Query(default=None),
    db: AsyncSession = Depends(get_db),
):
    return await DigitalFileService.check_access(db, product_id, email)

# --- Admin ---

@router.get("/stats/overview", response_model=DownloadStatsResponse, dependencies=[Depends(get_current_admin)])
async def download_stats(db: AsyncSession = Depends(get_db)):
    return await DigitalFileService.stats(db)


@router.post(
    "/{product_id}",
    response_model=DigitalFileResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(get_current_admin)],
)
async def create_file(product_id: int, data: DigitalFileCreate, db: AsyncSession = Depends(get_db)):
    return await DigitalFileService.create_file(db, product_id, data)


@router.get("/{product_id}", response_model=List[DigitalFileResponse], dependencies=[Depends(get_current_admin)])
async def list_files(product_id: int, db: AsyncSession = Depends(get_db)):
    return await DigitalFileService.list_files(db, product_id)


@router.put("/{file_id}", response_model=DigitalFileResponse, dependencies=[Depends(get_current_admin)])
async def update_file(file_id: int, data: DigitalFileUpdate, db: AsyncSession = Depends(get_db)):
    return await DigitalFileService.update_file(db, file_id, data)


@router.delete("/{file_id}", response_model=MessageResponse, dependencies=[Depends(get_current_admin)])
async def delete_file(file_id: int, db: AsyncSession = Depends(get_db)):
    return await DigitalFileService.delete_file(db, file_id)
