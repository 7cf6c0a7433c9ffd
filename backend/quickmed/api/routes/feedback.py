"""Feedback: public reviews, moderated by admins."""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from quickmed.api.deps import get_db, require_admin
from quickmed.core.exceptions import BusinessError
from quickmed.models.feedback import Feedback
from quickmed.models.product import Product
from quickmed.models.user import User
from quickmed.schemas.common import ok, ok_list
from quickmed.schemas.feedback import FeedbackCreate, FeedbackOut, FeedbackStats, FeedbackStatusUpdate

router = APIRouter()


def _get_feedback(db: Session, feedback_id: int) -> Feedback:
    feedback = db.query(Feedback).filter(Feedback.id == feedback_id).first()
    if not feedback:
        raise BusinessError.not_found("Feedback")
    return feedback


@router.post("", status_code=status.HTTP_201_CREATED)
def create_feedback(data: FeedbackCreate, db: Session = Depends(get_db)):
    if not db.query(Product.id).filter(Product.id == data.product_id).first():
        raise BusinessError.not_found("Product")
    feedback = Feedback(
        name=data.name.strip(),
        email=str(data.email).lower(),
        feedback=data.feedback.strip(),
        rating=data.rating,
        product_id=data.product_id,
        status="pending",
    )
    db.add(feedback)
    db.commit()
    db.refresh(feedback)
    return ok(FeedbackOut.model_validate(feedback))


@router.get("/product/{product_id}")
def product_feedback(product_id: int, db: Session = Depends(get_db)):
    """Approved reviews only."""
    rows = (
        db.query(Feedback)
        .filter(Feedback.product_id == product_id, Feedback.status == "approved")
        .order_by(Feedback.created_at.desc(), Feedback.id.desc())
        .all()
    )
    return ok_list([FeedbackOut.model_validate(f) for f in rows])


@router.get("")
def list_feedback(
    status_filter: str | None = Query(None, alias="status"),
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    q = db.query(Feedback)
    if status_filter:
        q = q.filter(Feedback.status == status_filter)
    rows = q.order_by(Feedback.created_at.desc(), Feedback.id.desc()).all()
    return ok_list([FeedbackOut.model_validate(f) for f in rows])


@router.get("/stats")
def feedback_stats(db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    ratings = [r for (r,) in db.query(Feedback.rating).all()]
    distribution = {star: 0 for star in range(1, 6)}
    for r in ratings:
        distribution[r] = distribution.get(r, 0) + 1
    stats = FeedbackStats(
        total=len(ratings),
        average_rating=round(sum(ratings) / len(ratings), 2) if ratings else 0.0,
        positive=sum(1 for r in ratings if r >= 4),
        distribution=distribution,
    )
    return ok(stats)


@router.patch("/{feedback_id}/status")
def update_feedback_status(
    feedback_id: int,
    data: FeedbackStatusUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    feedback = _get_feedback(db, feedback_id)
    feedback.status = data.status
    db.commit()
    db.refresh(feedback)
    return ok(FeedbackOut.model_validate(feedback))


@router.delete("/{feedback_id}")
def delete_feedback(feedback_id: int, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    db.delete(_get_feedback(db, feedback_id))
    db.commit()
    return ok(None)
