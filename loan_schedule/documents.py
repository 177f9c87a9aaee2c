"""PDF documents for repayment schedules and payment receipts.

Documents are drawn with the ``reportlab`` canvas on A4 paper and returned as
bytes so that callers can stream them as downloads or attach them to mail.
"""

from __future__ import annotations

from datetime import date
from io import BytesIO
from typing import List, Optional, Tuple

from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas

from .data_models import LoanSnapshot, RepaymentRecord, RepaymentSchedule
from .formatter import format_money, format_rate

PAGE_WIDTH, PAGE_HEIGHT = A4
LEFT = 40
RIGHT = PAGE_WIDTH - 40
BOTTOM_MARGIN = 70

SCHEDULE_COLUMNS: List[Tuple[str, float, str]] = [
    # heading, x position, alignment
    ("#", 50, "center"),
    ("Payment Date", 75, "left"),
    ("Payment Amount", 240, "right"),
    ("Principal", 325, "right"),
    ("Interest", 405, "right"),
    ("Balance After", 495, "right"),
    ("Status", 505, "left"),
]


def schedule_filename(loan_number: Optional[str]) -> str:
    return f"repayment-schedule-{loan_number or 'loan'}.pdf"


def receipt_filename(payment_id: int) -> str:
    return f"payment-receipt-{payment_id}.pdf"


def _draw_cell(p: canvas.Canvas, x: float, y: float, text: str, align: str) -> None:
    if align == "right":
        p.drawRightString(x, y, text)
    elif align == "center":
        p.drawCentredString(x, y, text)
    else:
        p.drawString(x, y, text)


def _draw_pairs(p: canvas.Canvas, y: float, pairs: List[Tuple[str, str]]) -> float:
    """Draw label/value pairs two per line and return the next y position."""
    p.setFont("Helvetica", 10)
    for i in range(0, len(pairs), 2):
        for offset, (label, value) in zip((LEFT, PAGE_WIDTH / 2), pairs[i:i + 2]):
            p.setFont("Helvetica-Bold", 10)
            p.drawString(offset, y, label)
            p.setFont("Helvetica", 10)
            p.drawString(offset + 110, y, value)
        y -= 16
    return y


def _draw_table_header(p: canvas.Canvas, y: float) -> float:
    p.setFont("Helvetica-Bold", 9)
    for heading, x, align in SCHEDULE_COLUMNS:
        _draw_cell(p, x, y, heading, align)
    p.line(LEFT, y - 4, RIGHT, y - 4)
    p.setFont("Helvetica", 9)
    return y - 16


def _draw_footer(p: canvas.Canvas, generated_on: date) -> None:
    p.setFont("Helvetica", 8)
    p.drawCentredString(PAGE_WIDTH / 2, 40, "This is a computer-generated document. No signature is required.")
    p.drawCentredString(PAGE_WIDTH / 2, 28, f"© {generated_on.year} Loan Management System. All rights reserved.")


def render_schedule_pdf(
    loan: LoanSnapshot,
    schedule: RepaymentSchedule,
    currency: Optional[str] = None,
    generated_on: Optional[date] = None,
) -> bytes:
    """Render the repayment schedule of ``loan`` as a PDF document."""
    generated_on = generated_on or schedule.as_of or date.today()
    summary = schedule.summary
    buffer = BytesIO()
    p = canvas.Canvas(buffer, pagesize=A4)
    p.setTitle(f"Loan Repayment Schedule {loan.loan_number or ''}".strip())

    y = PAGE_HEIGHT - 60
    p.setFont("Helvetica-Bold", 18)
    p.drawCentredString(PAGE_WIDTH / 2, y, "Loan Repayment Schedule")
    y -= 16
    p.setFont("Helvetica", 10)
    p.drawCentredString(PAGE_WIDTH / 2, y, f"Generated on {generated_on.strftime('%B %d, %Y')}")
    y -= 8
    p.line(LEFT, y, RIGHT, y)
    y -= 22

    y = _draw_pairs(
        p,
        y,
        [
            ("Loan Number:", loan.loan_number or "N/A"),
            ("Borrower:", loan.borrower_name or "N/A"),
            ("Loan Status:", (loan.status or "N/A").capitalize()),
            ("Release Date:", summary.release_date.isoformat()),
            ("Duration:", f"{summary.duration} {summary.duration_unit.label}"),
            ("Interest Rate:", format_rate(summary.interest_rate)),
        ],
    )
    y -= 10
    p.setFont("Helvetica-Bold", 12)
    p.drawString(LEFT, y, "Loan Summary")
    y -= 18
    y = _draw_pairs(
        p,
        y,
        [
            ("Principal Amount:", format_money(summary.principal_amount, currency)),
            ("Total Interest:", format_money(summary.total_interest, currency)),
            ("Original Total:", format_money(summary.original_total_repayment, currency)),
            ("Total Paid:", format_money(summary.total_paid, currency)),
            ("Current Balance:", format_money(summary.current_balance, currency)),
            ("Payments Made:", f"{summary.payments_made} / {summary.duration}"),
        ],
    )

    if schedule.next_payment is not None:
        nxt = schedule.next_payment
        y -= 10
        p.setFont("Helvetica-Bold", 12)
        p.drawString(LEFT, y, "Next Payment Due")
        y -= 16
        p.setFont("Helvetica", 10)
        p.drawString(
            LEFT,
            y,
            f"Date: {nxt.payment_date.strftime('%B %d, %Y')} | "
            f"Amount: {format_money(nxt.payment_amount, currency)} | "
            f"Balance After: {format_money(nxt.balance_after, currency)}",
        )
        y -= 14

    y -= 16
    y = _draw_table_header(p, y)
    for entry in schedule.installments:
        if y <= BOTTOM_MARGIN:
            _draw_footer(p, generated_on)
            p.showPage()
            y = _draw_table_header(p, PAGE_HEIGHT - 60)
        cells = [
            str(entry.installment_number),
            entry.payment_date.strftime("%b %d, %Y"),
            format_money(entry.payment_amount, currency),
            format_money(entry.principal_portion, currency),
            format_money(entry.interest_portion, currency),
            format_money(entry.balance_after, currency),
            entry.status.value,
        ]
        for (_, x, align), text in zip(SCHEDULE_COLUMNS, cells):
            _draw_cell(p, x, y, text, align)
        y -= 14

    _draw_footer(p, generated_on)
    p.showPage()
    p.save()
    return buffer.getvalue()


def render_receipt_pdf(
    loan: LoanSnapshot,
    payment: RepaymentRecord,
    currency: Optional[str] = None,
) -> bytes:
    """Render a payment receipt for ``payment`` as a PDF document."""
    buffer = BytesIO()
    p = canvas.Canvas(buffer, pagesize=A4)
    p.setTitle(f"Payment Receipt {payment.receipt_number}")

    y = PAGE_HEIGHT - 60
    p.setFont("Helvetica-Bold", 18)
    p.drawCentredString(PAGE_WIDTH / 2, y, "Payment Receipt")
    y -= 18
    p.setFont("Helvetica", 11)
    p.drawCentredString(PAGE_WIDTH / 2, y, payment.receipt_number)
    y -= 8
    p.line(LEFT, y, RIGHT, y)
    y -= 30

    p.setFont("Helvetica-Bold", 14)
    p.drawCentredString(PAGE_WIDTH / 2, y, f"Amount Paid: {format_money(payment.amount, currency)}")
    y -= 30

    rows = [
        ("Receipt Date:", payment.paid_on.strftime("%B %d, %Y")),
        ("Borrower:", loan.borrower_name or "N/A"),
        ("Loan Number:", loan.loan_number or "N/A"),
        ("Loan Status:", (loan.status or "N/A").capitalize()),
        ("Principal Amount:", format_money(loan.principal_amount, currency)),
        ("Payment Method:", payment.method or "N/A"),
        ("Reference Number:", payment.reference_number or "N/A"),
        ("Remaining Balance:", format_money(payment.balance_after, currency)),
    ]
    for label, value in rows:
        p.setFont("Helvetica-Bold", 11)
        p.drawString(80, y, label)
        p.setFont("Helvetica", 11)
        p.drawRightString(RIGHT - 40, y, value)
        y -= 22

    if payment.balance_after <= 0:
        y -= 10
        p.setFont("Helvetica-Bold", 12)
        p.drawCentredString(PAGE_WIDTH / 2, y, "Congratulations! This loan has been fully paid.")

    _draw_footer(p, payment.paid_on)
    p.showPage()
    p.save()
    return buffer.getvalue()
