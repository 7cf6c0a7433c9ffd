"""Reports (admin): PDF downloads built with reportlab."""
from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from quickmed.api.deps import get_db, require_admin
from quickmed.core.exceptions import BusinessError
from quickmed.models.user import User
from quickmed.services.report_service import REPORT_BUILDERS

router = APIRouter()


@router.get("/{report_name}")
def download_report(report_name: str, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    """report_name: customers | orders | prescriptions | feedback | inventory"""
    builder = REPORT_BUILDERS.get(report_name)
    if builder is None:
        raise BusinessError.not_found("Report")
    buffer = builder(db)
    filename = f"{report_name}-report.pdf"
    return StreamingResponse(
        buffer,
        media_type="application/pdf",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )
