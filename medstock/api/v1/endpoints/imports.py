import logging
from typing import Literal

from fastapi import APIRouter, Depends, File, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import Response
from sqlalchemy.orm import Session

from medstock.core.database import get_db
from medstock.dependencies.authz import get_current_profile
from medstock.models.user import UserProfile
from medstock.schemas.imports import BatchResult
from medstock.services.import_service import get_template, import_batch

router = APIRouter()
logger = logging.getLogger(__name__)

ImportKind = Literal["hospitals", "served-units", "patients", "movements"]


@router.get("/{kind}/template", tags=["imports"])
def download_template(
    kind: ImportKind,
    current_profile: UserProfile = Depends(get_current_profile),
) -> Response:
    """
    CSV template (UTF-8 with BOM) with the header row and example rows.
    """
    template = get_template(kind)
    return Response(
        content=template.render().encode("utf-8"),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{template.filename}"'},
    )


@router.post("/{kind}", response_model=BatchResult, tags=["imports"])
async def upload_batch(
    kind: ImportKind,
    file: UploadFile = File(...),
    current_profile: UserProfile = Depends(get_current_profile),
    db: Session = Depends(get_db),
) -> BatchResult:
    """
    Import a CSV. Bad rows are reported as {row, message} and skipped; all
    accepted rows are saved together.
    """
    content = await file.read()
    logger.info(
        "Batch import started kind=%s file=%s size=%s user_id=%s",
        kind,
        file.filename,
        len(content),
        current_profile.id,
    )
    return await run_in_threadpool(import_batch, db, kind, content, current_profile)
