"""Support: contact form tickets, handled by admins."""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from quickmed.api.deps import get_db, get_optional_user, require_admin
from quickmed.core.exceptions import BusinessError
from quickmed.models.support import SupportTicket
from quickmed.models.user import User
from quickmed.schemas.common import ok, ok_list
from quickmed.schemas.support import SupportCreate, SupportOut, SupportStatusUpdate, SupportUpdate

router = APIRouter()


def _get_ticket(db: Session, ticket_id: int) -> SupportTicket:
    ticket = db.query(SupportTicket).filter(SupportTicket.id == ticket_id).first()
    if not ticket:
        raise BusinessError.not_found("Support ticket")
    return ticket


@router.post("", status_code=status.HTTP_201_CREATED)
def submit_ticket(
    data: SupportCreate,
    db: Session = Depends(get_db),
    current_user: User | None = Depends(get_optional_user),
):
    ticket = SupportTicket(
        name=data.name.strip(),
        email=str(data.email).lower(),
        subject=data.subject.strip(),
        message=data.message.strip(),
        user_id=current_user.id if current_user else None,
        status="pending",
    )
    db.add(ticket)
    db.commit()
    db.refresh(ticket)
    return ok(SupportOut.model_validate(ticket))


@router.get("")
def list_tickets(
    status_filter: str | None = Query(None, alias="status"),
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    q = db.query(SupportTicket)
    if status_filter:
        q = q.filter(SupportTicket.status == status_filter)
    rows = q.order_by(SupportTicket.created_at.desc(), SupportTicket.id.desc()).all()
    return ok_list([SupportOut.model_validate(t) for t in rows])


@router.get("/{ticket_id}")
def get_ticket(ticket_id: int, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    return ok(SupportOut.model_validate(_get_ticket(db, ticket_id)))


@router.patch("/{ticket_id}")
def update_ticket(
    ticket_id: int,
    data: SupportUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    ticket = _get_ticket(db, ticket_id)
    for field, value in data.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(ticket, field, str(value).lower() if field == "email" else value)
    db.commit()
    db.refresh(ticket)
    return ok(SupportOut.model_validate(ticket))


@router.patch("/{ticket_id}/status")
def update_ticket_status(
    ticket_id: int,
    data: SupportStatusUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    ticket = _get_ticket(db, ticket_id)
    ticket.status = data.status
    db.commit()
    db.refresh(ticket)
    return ok(SupportOut.model_validate(ticket))


@router.delete("/{ticket_id}")
def delete_ticket(ticket_id: int, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    db.delete(_get_ticket(db, ticket_id))
    db.commit()
    return ok(None)
