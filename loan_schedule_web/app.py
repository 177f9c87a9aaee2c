import logging
import os
from datetime import date
from decimal import Decimal
from io import BytesIO

from flask import (
    Blueprint,
    Flask,
    abort,
    current_app,
    jsonify,
    redirect,
    render_template,
    request,
    send_file,
    url_for,
)

from loan_schedule.data_models import DurationUnit
from loan_schedule.documents import (
    receipt_filename,
    render_receipt_pdf,
    render_schedule_pdf,
    schedule_filename,
)
from loan_schedule.engine import InvalidInput, compute_schedule
from loan_schedule.formatter import (
    default_currency,
    format_for_display,
    format_money,
    format_rate,
    serialize_schedule,
)
from loan_schedule.logging_config import setup_logging
from loan_schedule.utils import decimal_from_str, parse_date
from loan_schedule_web.loan_store import LoanNotFound, RepaymentRejected, create_store_from_env

logger = logging.getLogger("loan_schedule.web")

bp = Blueprint("loans", __name__)

UNIT_OPTIONS = [unit.value for unit in DurationUnit]


def _store():
    return current_app.extensions["loan_store"]


def _currency() -> str:
    return current_app.config["CURRENCY"]


def _as_of_from_request() -> date:
    raw = request.args.get("as_of", "").strip()
    return parse_date(raw) if raw else date.today()


def _schedule_for(loan_id: int, as_of: date):
    """Load the loan snapshot and compute its schedule as of ``as_of``."""
    try:
        snapshot = _store().get_snapshot(loan_id)
    except LoanNotFound:
        abort(404)
    payments_made = None
    if current_app.config["USE_LEDGER"]:
        payments_made = _store().repayment_count(loan_id)
    return snapshot, compute_schedule(snapshot, as_of, payments_made=payments_made)


def _form_to_loan(form) -> dict:
    duration_text = form.get("duration", "").strip()
    try:
        duration = int(duration_text)
    except ValueError:
        raise ValueError(f"Invalid duration: {duration_text or '(empty)'}")
    return {
        "loan_number": form.get("loan_number", "").strip(),
        "borrower_name": form.get("borrower_name", "").strip() or None,
        "principal_amount": decimal_from_str(form.get("principal_amount", "")),
        "interest_rate": decimal_from_str(form.get("interest_rate", "")),
        "duration": duration,
        "duration_unit": DurationUnit.parse(form.get("duration_unit", "month")),
        "release_date": parse_date(form.get("release_date", "")),
    }


def _render_loan_page(loan_id: int, as_of: date, error=None, status: int = 200):
    snapshot, schedule = _schedule_for(loan_id, as_of)
    loan = _store().get_loan(loan_id)
    return (
        render_template(
            "loan.html",
            loan=loan,
            snapshot=snapshot,
            schedule=schedule,
            rows=format_for_display(schedule),
            repayments=_store().list_repayments(loan_id),
            as_of=as_of,
            today=date.today(),
            error=error,
        ),
        status,
    )


@bp.route("/", methods=["GET"])
def index():
    return render_template("index.html", loans=_store().list_loans(), unit_options=UNIT_OPTIONS, error=None, form={})


@bp.post("/loans")
def create_loan():
    try:
        loan = _store().add_loan(**_form_to_loan(request.form))
    except ValueError as exc:
        # InvalidInput is a ValueError as well
        return (
            render_template(
                "index.html",
                loans=_store().list_loans(),
                unit_options=UNIT_OPTIONS,
                error=str(exc),
                form=request.form,
            ),
            400,
        )
    return redirect(url_for("loans.loan_detail", loan_id=loan["id"]))


@bp.get("/loans/<int:loan_id>")
def loan_detail(loan_id: int):
    try:
        as_of = _as_of_from_request()
    except ValueError as exc:
        return _render_loan_page(loan_id, date.today(), error=str(exc), status=400)
    try:
        return _render_loan_page(loan_id, as_of)
    except InvalidInput as exc:
        logger.warning("Cannot schedule loan %s: %s", loan_id, exc)
        return str(exc), 400


@bp.get("/loans/<int:loan_id>/schedule.json")
def schedule_json(loan_id: int):
    try:
        _, schedule = _schedule_for(loan_id, _as_of_from_request())
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400
    return jsonify(serialize_schedule(schedule))


@bp.get("/loans/<int:loan_id>/schedule.pdf")
def schedule_pdf(loan_id: int):
    try:
        snapshot, schedule = _schedule_for(loan_id, _as_of_from_request())
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400
    content = render_schedule_pdf(snapshot, schedule, _currency(), generated_on=date.today())
    logger.info(
        "Repayment schedule downloaded for loan %s",
        snapshot.loan_number,
        extra={"loan_number": snapshot.loan_number, "action": "schedule_pdf"},
    )
    return send_file(
        BytesIO(content),
        mimetype="application/pdf",
        as_attachment=True,
        download_name=schedule_filename(snapshot.loan_number),
    )


@bp.post("/loans/<int:loan_id>/repayments")
def add_repayment(loan_id: int):
    form = request.form
    try:
        amount = decimal_from_str(form.get("amount", ""))
        paid_on_text = form.get("paid_on", "").strip()
        paid_on = parse_date(paid_on_text) if paid_on_text else date.today()
        _store().record_repayment(
            loan_id,
            amount,
            paid_on,
            method=form.get("method", "").strip() or None,
            reference_number=form.get("reference_number", "").strip() or None,
        )
    except LoanNotFound:
        abort(404)
    except (RepaymentRejected, ValueError) as exc:
        return _render_loan_page(loan_id, date.today(), error=str(exc), status=400)
    return redirect(url_for("loans.loan_detail", loan_id=loan_id))


@bp.get("/repayments/<int:repayment_id>/receipt.pdf")
def repayment_receipt(repayment_id: int):
    try:
        payment = _store().get_repayment(repayment_id)
        snapshot = _store().get_snapshot(_store().repayment_loan_id(repayment_id))
    except LoanNotFound:
        abort(404)
    return send_file(
        BytesIO(render_receipt_pdf(snapshot, payment, _currency())),
        mimetype="application/pdf",
        as_attachment=True,
        download_name=receipt_filename(payment.id),
    )


@bp.post("/loans/<int:loan_id>/delete")
def delete_loan(loan_id: int):
    try:
        _store().remove_loan(loan_id)
    except LoanNotFound:
        abort(404)
    return redirect(url_for("loans.index"))


def create_app(config=None) -> Flask:
    """Build the web application.

    Settings come from environment variables unless overridden by ``config``:
    ``FLASK_SECRET_KEY``, ``LOAN_DATABASE_URL``, ``LOAN_SCHEDULE_CURRENCY``,
    ``LOAN_SCHEDULE_LOG_LEVEL`` and ``LOAN_SCHEDULE_USE_LEDGER``.
    """
    app = Flask(__name__)
    app.secret_key = os.environ.get("FLASK_SECRET_KEY", "dev-secret-key")
    app.config["DATABASE_URL"] = os.environ.get("LOAN_DATABASE_URL")
    app.config["CURRENCY"] = default_currency()
    app.config["LOG_LEVEL"] = os.environ.get("LOAN_SCHEDULE_LOG_LEVEL", "INFO")
    app.config["USE_LEDGER"] = os.environ.get("LOAN_SCHEDULE_USE_LEDGER") == "1"
    if config:
        app.config.update(config)

    setup_logging(app.config["LOG_LEVEL"])
    app.extensions["loan_store"] = create_store_from_env(app.config["DATABASE_URL"])

    @app.template_filter("money")
    def money_filter(amount: Decimal) -> str:
        return format_money(amount, app.config["CURRENCY"])

    @app.template_filter("percent")
    def percent_filter(rate: Decimal) -> str:
        return format_rate(rate)

    app.register_blueprint(bp)
    return app


if __name__ == "__main__":
    print("Starting loan repayment schedule web app...")
    create_app().run(host="0.0.0.0", port=8710, debug=True)
