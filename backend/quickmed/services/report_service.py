"""
PDF reports for the admin console.

Every report has the same layout: title, generation date, a row of
summary cards and a striped table. Each build_* function returns a
BytesIO positioned at the start, ready to stream.
"""
from html import escape
from io import BytesIO
from datetime import datetime, timezone
from typing import List, Sequence, Tuple

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import inch
from reportlab.platypus import SimpleDocTemplate, Table, TableStyle, Paragraph, Spacer
from sqlalchemy import func
from sqlalchemy.orm import Session

from quickmed.models.batch import Batch
from quickmed.models.feedback import Feedback
from quickmed.models.order import Order
from quickmed.models.prescription import Prescription
from quickmed.models.product import Product
from quickmed.models.user import User
from quickmed.services import batch_rules
from quickmed.services.batch_rules import BATCH_ACTIVE

PRIMARY = colors.HexColor('#1a56db')
TEXT = colors.HexColor('#374151')

styles = getSampleStyleSheet()

title_style = ParagraphStyle(
    'ReportTitle',
    parent=styles['Heading1'],
    fontSize=22,
    textColor=PRIMARY,
    alignment=TA_CENTER,
    spaceAfter=6
)

subtitle_style = ParagraphStyle(
    'ReportSubtitle',
    parent=styles['Normal'],
    fontSize=9,
    textColor=colors.grey,
    alignment=TA_CENTER
)

card_label_style = ParagraphStyle(
    'CardLabel',
    parent=styles['Normal'],
    fontSize=8,
    textColor=colors.grey,
    alignment=TA_CENTER
)

card_value_style = ParagraphStyle(
    'CardValue',
    parent=styles['Heading2'],
    fontSize=16,
    textColor=TEXT,
    alignment=TA_CENTER
)

cell_style = ParagraphStyle(
    'Cell',
    parent=styles['Normal'],
    fontSize=9,
    textColor=TEXT
)


def _fmt_date(value) -> str:
    if not value:
        return "-"
    return value.strftime('%d %b %Y')


def _money(value) -> str:
    return f"Rs. {float(value or 0):.2f}"


def _summary_cards(cards: Sequence[Tuple[str, object]], width: float) -> Table:
    card_width = width / len(cards)
    row = [
        [Paragraph(label.upper(), card_label_style), Paragraph(str(value), card_value_style)]
        for label, value in cards
    ]
    table = Table([row], colWidths=[card_width] * len(cards))
    table.setStyle(TableStyle([
        ('BOX', (0, 0), (-1, -1), 0.5, colors.HexColor('#e5e7eb')),
        ('INNERGRID', (0, 0), (-1, -1), 0.5, colors.HexColor('#e5e7eb')),
        ('BACKGROUND', (0, 0), (-1, -1), colors.HexColor('#f9fafb')),
        ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
        ('TOPPADDING', (0, 0), (-1, -1), 10),
        ('BOTTOMPADDING', (0, 0), (-1, -1), 10),
    ]))
    return table


def _data_table(headers: Sequence[str], rows: List[Sequence], col_widths: Sequence[float]) -> Table:
    data = [[Paragraph(f"<b>{h}</b>", cell_style) for h in headers]]
    for row in rows:
        data.append([Paragraph(escape(str(v)), cell_style) for v in row])
    if not rows:
        data.append([Paragraph("No records", cell_style)] + [""] * (len(headers) - 1))

    table = Table(data, colWidths=col_widths, repeatRows=1)
    table.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor('#f3f4f6')),
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('GRID', (0, 0), (-1, -1), 0.5, colors.grey),
        ('ROWBACKGROUNDS', (0, 1), (-1, -1), [colors.white, colors.HexColor('#fafafa')]),
        ('TOPPADDING', (0, 0), (-1, -1), 5),
        ('BOTTOMPADDING', (0, 0), (-1, -1), 5),
    ]))
    return table


def _build(title: str, cards, headers, rows, col_fractions, wide: bool = False) -> BytesIO:
    buffer = BytesIO()
    pagesize = landscape(A4) if wide else A4
    doc = SimpleDocTemplate(
        buffer, pagesize=pagesize,
        topMargin=0.5*inch, bottomMargin=0.5*inch,
        leftMargin=0.5*inch, rightMargin=0.5*inch,
        title=title,
    )
    width = doc.width

    elements = [
        Paragraph("QuickMed Pharmacy", subtitle_style),
        Paragraph(title, title_style),
        Paragraph(f"Generated on {datetime.now().strftime('%d %b %Y at %I:%M %p')}", subtitle_style),
        Spacer(1, 0.25*inch),
        _summary_cards(cards, width),
        Spacer(1, 0.3*inch),
        _data_table(headers, rows, [width * f for f in col_fractions]),
    ]
    doc.build(elements)
    buffer.seek(0)
    return buffer


def _month_start() -> datetime:
    now = datetime.now(timezone.utc)
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def _is_after(value: datetime, boundary: datetime) -> bool:
    if value is None:
        return False
    if value.tzinfo is None:
        # SQLite hands back naive UTC
        value = value.replace(tzinfo=timezone.utc)
    return value >= boundary


def build_customer_report(db: Session) -> BytesIO:
    customers = db.query(User).filter(User.role == "user").order_by(User.created_at.desc()).all()
    month_start = _month_start()
    cards = [
        ("Total Customers", len(customers)),
        ("New This Month", sum(1 for c in customers if _is_after(c.created_at, month_start))),
        ("Active Customers", sum(1 for c in customers if c.status == "active")),
    ]
    rows = [
        (i, c.name, c.email, c.phone or "-", _fmt_date(c.created_at))
        for i, c in enumerate(customers, start=1)
    ]
    return _build(
        "Customer Report", cards,
        ("No.", "Name", "Email", "Phone", "Joined Date"), rows,
        (0.07, 0.25, 0.33, 0.17, 0.18),
    )


def build_order_report(db: Session) -> BytesIO:
    orders = db.query(Order).order_by(Order.created_at.desc()).all()
    revenue = sum(float(o.total_amount or 0) for o in orders)
    average = revenue / len(orders) if orders else 0.0
    cards = [
        ("Total Orders", len(orders)),
        ("Total Revenue", _money(revenue)),
        ("Avg. Order", _money(average)),
    ]
    rows = [
        (i, o.order_number, o.customer, _money(o.total_amount), o.status, _fmt_date(o.created_at))
        for i, o in enumerate(orders, start=1)
    ]
    return _build(
        "Order Report", cards,
        ("No.", "Order ID", "Customer", "Amount", "Status", "Date"), rows,
        (0.07, 0.22, 0.23, 0.16, 0.14, 0.18),
    )


def build_prescription_report(db: Session) -> BytesIO:
    prescriptions = db.query(Prescription).order_by(Prescription.created_at.desc()).all()
    uploader_ids = {p.user_id for p in prescriptions}
    uploaders = {
        u.id: u.name for u in db.query(User).filter(User.id.in_(uploader_ids)).all()
    } if uploader_ids else {}
    cards = [
        ("Total Prescriptions", len(prescriptions)),
        ("Pending", sum(1 for p in prescriptions if p.status == "pending")),
        ("Approved", sum(1 for p in prescriptions if p.status == "approved")),
    ]
    rows = [
        (i, p.patient_name, p.patient_age, p.status, _fmt_date(p.created_at), uploaders.get(p.user_id, "-"))
        for i, p in enumerate(prescriptions, start=1)
    ]
    return _build(
        "Prescription Report", cards,
        ("No.", "Patient", "Age", "Status", "Date", "Uploaded By"), rows,
        (0.07, 0.27, 0.08, 0.14, 0.18, 0.26),
    )


def build_feedback_report(db: Session) -> BytesIO:
    feedback = db.query(Feedback).order_by(Feedback.created_at.desc()).all()
    average = sum(f.rating for f in feedback) / len(feedback) if feedback else 0.0
    cards = [
        ("Total Feedbacks", len(feedback)),
        ("Avg. Rating", f"{average:.1f}"),
        ("Positive", sum(1 for f in feedback if f.rating >= 4)),
    ]
    rows = [
        (i, f.name, f.rating, f.feedback, _fmt_date(f.created_at))
        for i, f in enumerate(feedback, start=1)
    ]
    return _build(
        "Feedback Report", cards,
        ("No.", "User", "Rating", "Comment", "Date"), rows,
        (0.07, 0.2, 0.1, 0.45, 0.18),
    )


def build_inventory_report(db: Session) -> BytesIO:
    products = db.query(Product).order_by(Product.name.asc()).all()
    today = batch_rules.current_date()
    active_batches = dict(
        db.query(Batch.product_id, func.count(Batch.id))
        .filter(Batch.status == BATCH_ACTIVE, Batch.expiry_date > today)
        .group_by(Batch.product_id)
        .all()
    )
    cards = [
        ("Total Products", len(products)),
        ("In Stock", sum(1 for p in products if p.total_stock > 0)),
        ("Out of Stock", sum(1 for p in products if p.total_stock == 0)),
        ("Total Stock", sum(p.total_stock or 0 for p in products)),
    ]
    rows = [
        (
            i, p.name, p.category, _money(p.price), p.total_stock,
            "In Stock" if p.total_stock > 0 else "Out of Stock",
            active_batches.get(p.id, 0),
        )
        for i, p in enumerate(products, start=1)
    ]
    return _build(
        "Inventory Report", cards,
        ("No.", "Name", "Category", "Price", "Stock", "Status", "Batches"), rows,
        (0.06, 0.3, 0.16, 0.13, 0.1, 0.14, 0.11),
        wide=True,
    )


REPORT_BUILDERS = {
    "customers": build_customer_report,
    "orders": build_order_report,
    "prescriptions": build_prescription_report,
    "feedback": build_feedback_report,
    "inventory": build_inventory_report,
}
