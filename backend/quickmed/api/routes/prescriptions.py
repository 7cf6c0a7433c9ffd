"""Prescriptions: customers upload scans, admins and pharmacies review them.

Uploads are multipart: patientName, patientAge, optional notes, and 1 to
MAX_PRESCRIPTION_FILES files under the "files" field.
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from sqlalchemy.orm import Session

from quickmed.api.deps import get_db, get_current_user, require_admin, require_roles
from quickmed.core.audit import AuditLog
from quickmed.core.config import settings
from quickmed.core.exceptions import BusinessError
from quickmed.core.permissions import ensure_owner_or_admin
from quickmed.models.prescription import Prescription
from quickmed.models.user import User
from quickmed.schemas.common import ok, ok_list
from quickmed.schemas.prescription import PrescriptionOut, PrescriptionReview
from quickmed.services import upload_service
from quickmed.services.upload_service import PRESCRIPTIONS

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_prescription(db: Session, prescription_id: int) -> Prescription:
    prescription = db.query(Prescription).filter(Prescription.id == prescription_id).first()
    if not prescription:
        raise BusinessError.not_found("Prescription")
    return prescription


def _real_files(files: Optional[List[UploadFile]]) -> List[UploadFile]:
    return [f for f in (files or []) if f is not None and f.filename]


def _check_file_count(files: List[UploadFile]):
    if not files:
        raise BusinessError.bad_request("At least one prescription file is required")
    if len(files) > settings.MAX_PRESCRIPTION_FILES:
        raise BusinessError.bad_request(
            f"A maximum of {settings.MAX_PRESCRIPTION_FILES} files can be uploaded"
        )


def _check_patient(name: Optional[str], age: Optional[int]):
    if name is not None and not name.strip():
        raise BusinessError.bad_request("Patient name is required")
    if age is not None and not 0 <= age <= 150:
        raise BusinessError.bad_request("Patient age must be between 0 and 150")


@router.post("", status_code=status.HTTP_201_CREATED)
def upload_prescription(
    patient_name: str = Form(..., alias="patientName"),
    patient_age: int = Form(..., alias="patientAge"),
    notes: Optional[str] = Form(None),
    files: Optional[List[UploadFile]] = File(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    files = _real_files(files)
    _check_patient(patient_name, patient_age)
    _check_file_count(files)

    stored = upload_service.save_uploads(files, PRESCRIPTIONS)
    try:
        prescription = Prescription(
            user_id=current_user.id,
            patient_name=patient_name.strip(),
            patient_age=patient_age,
            notes=notes,
            file_paths=stored,
            status="pending",
        )
        db.add(prescription)
        db.commit()
    except Exception:
        db.rollback()
        upload_service.delete_files(stored, PRESCRIPTIONS)
        raise

    db.refresh(prescription)
    logger.info(f"Prescription {prescription.id} uploaded by user {current_user.id} ({len(stored)} files)")
    return ok(PrescriptionOut.model_validate(prescription))


@router.get("")
def my_prescriptions(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    rows = (
        db.query(Prescription)
        .filter(Prescription.user_id == current_user.id)
        .order_by(Prescription.created_at.desc(), Prescription.id.desc())
        .all()
    )
    return ok_list([PrescriptionOut.model_validate(p) for p in rows])


@router.get("/admin/all")
def all_prescriptions(
    status_filter: str | None = Query(None, alias="status"),
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    q = db.query(Prescription)
    if status_filter:
        q = q.filter(Prescription.status == status_filter)
    rows = q.order_by(Prescription.created_at.desc(), Prescription.id.desc()).all()
    return ok_list([PrescriptionOut.model_validate(p) for p in rows])


@router.get("/{prescription_id}")
def get_prescription(
    prescription_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    prescription = _get_prescription(db, prescription_id)
    ensure_owner_or_admin(current_user, prescription.user_id, "prescription", prescription.id)
    return ok(PrescriptionOut.model_validate(prescription))


@router.patch("/{prescription_id}")
def update_prescription(
    prescription_id: int,
    patient_name: Optional[str] = Form(None, alias="patientName"),
    patient_age: Optional[int] = Form(None, alias="patientAge"),
    notes: Optional[str] = Form(None),
    files: Optional[List[UploadFile]] = File(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """New files replace all old ones; the old files are deleted after commit."""
    prescription = _get_prescription(db, prescription_id)
    ensure_owner_or_admin(current_user, prescription.user_id, "prescription", prescription.id, action="write")
    _check_patient(patient_name, patient_age)

    files = _real_files(files)
    stored, replaced = [], []
    if files:
        _check_file_count(files)
        stored = upload_service.save_uploads(files, PRESCRIPTIONS)
        replaced = list(prescription.file_paths or [])

    try:
        if patient_name is not None:
            prescription.patient_name = patient_name.strip()
        if patient_age is not None:
            prescription.patient_age = patient_age
        if notes is not None:
            prescription.notes = notes
        if stored:
            prescription.file_paths = stored
        db.commit()
    except Exception:
        db.rollback()
        upload_service.delete_files(stored, PRESCRIPTIONS)
        raise

    upload_service.delete_files(replaced, PRESCRIPTIONS)
    db.refresh(prescription)
    return ok(PrescriptionOut.model_validate(prescription))


@router.patch("/{prescription_id}/status")
def review_prescription(
    prescription_id: int,
    data: PrescriptionReview,
    db: Session = Depends(get_db),
    reviewer: User = Depends(require_roles("admin", "pharmacy")),
):
    prescription = _get_prescription(db, prescription_id)
    prescription.status = data.status
    if data.notes is not None:
        prescription.notes = data.notes
    db.commit()
    db.refresh(prescription)
    AuditLog.log_action(data.status, "prescription", prescription.id, reviewer)
    return ok(PrescriptionOut.model_validate(prescription))


@router.delete("/{prescription_id}")
def delete_prescription(
    prescription_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    prescription = _get_prescription(db, prescription_id)
    ensure_owner_or_admin(current_user, prescription.user_id, "prescription", prescription.id, action="delete")
    files = list(prescription.file_paths or [])
    db.delete(prescription)
    db.commit()
    upload_service.delete_files(files, PRESCRIPTIONS)
    return ok(None)
