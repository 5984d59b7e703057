import csv
from datetime import date as dt_date
from decimal import Decimal
from io import StringIO
from pathlib import Path

from fastapi import FastAPI, Form, HTTPException, Request
from fastapi.responses import HTMLResponse, RedirectResponse, Response
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates

from .db import init_db
from .ledger import (
    build_balance_series,
    build_contribution_series,
    compute_balance,
    compute_total_contributions,
    summarize,
)
from .logging_setup import configure_logging, get_logger
from .logic import (
    default_due_date,
    parse_due_date,
    parse_duration_days,
    parse_interest_rate,
    require_role,
    validate_frequency,
    validate_loan_status,
    validate_type,
)
from .models import (
    ADMIN_ROLES,
    PAYMENT_FREQUENCIES,
    STAFF_ROLES,
    TELLER_ROLES,
    TELLER_TYPES,
    TRANSACTION_TYPES,
)
from .repo import (
    count_active_loans,
    create_expense_category,
    delete_txn,
    get_active_loan_config,
    get_loan,
    get_member,
    get_member_by_profile,
    get_profile_role,
    list_expense_categories,
    list_loans,
    list_members,
    list_overdue_loans,
    list_txns,
    save_loan_config,
    set_expense_category_active,
    set_loan_due_date,
    update_loan_status,
)
from .settings import Settings, get_settings
from .teller import record_transaction

PACKAGE_DIR = Path(__file__).parent
DASHBOARD_RECENT = 5

logger = get_logger("mutuelle.main")


def _money(value) -> str:
    return f"{Decimal(value):,.2f}".replace(",", " ")


def _optional_int(value: str | None) -> int | None:
    if value is None or not value.strip():
        return None
    try:
        return int(value)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="identifier invalid") from exc


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)
    init_db(settings)
    db_path = settings.db_path

    app = FastAPI(title="Mutuelle")
    app.mount(
        "/static", StaticFiles(directory=PACKAGE_DIR / "static"), name="static"
    )
    templates = Jinja2Templates(directory=PACKAGE_DIR / "templates")
    templates.env.filters["money"] = _money
    templates.env.globals["currency"] = settings.currency

    def _require(profile_id: int | None, allowed) -> None:
        try:
            require_role(get_profile_role(db_path, profile_id), allowed)
        except PermissionError as exc:
            logger.warning("profile %s denied, needs %s", profile_id, sorted(allowed))
            raise HTTPException(status_code=403, detail=str(exc)) from exc

    def _resolve_member(member_id: int | None, profile_id: int | None):
        member = None
        if member_id is not None:
            member = get_member(db_path, member_id)
        elif profile_id is not None:
            member = get_member_by_profile(db_path, profile_id)
        if member is None:
            raise HTTPException(status_code=404, detail="member not found")
        return member

    def _build_dashboard_context(request: Request, member) -> dict:
        transactions = list_txns(db_path, member_id=member["id"])
        recent = transactions[: settings.recent_limit]
        return {
            "request": request,
            "member": member,
            "stats": summarize(
                transactions,
                active_loans=count_active_loans(db_path, member_id=member["id"]),
                recent_limit=settings.recent_limit,
            ),
            "contribution_series": build_contribution_series(transactions),
            "balance_series": build_balance_series(transactions),
            "transactions": recent[:DASHBOARD_RECENT],
        }

    @app.get("/", response_class=HTMLResponse)
    def index(
        request: Request,
        member_id: int | None = None,
        profile_id: int | None = None,
    ):
        if member_id is None and profile_id is None:
            return templates.TemplateResponse(
                request,
                "index.html",
                {"request": request, "members": list_members(db_path)},
            )
        member = _resolve_member(member_id, profile_id)
        return templates.TemplateResponse(
            request, "dashboard.html", _build_dashboard_context(request, member)
        )

    @app.get("/members/{member_id}/transactions", response_class=HTMLResponse)
    def member_transactions(
        request: Request,
        member_id: int,
        type: str | None = None,
        start: str | None = None,
        end: str | None = None,
    ):
        member = _resolve_member(member_id, None)
        txn_type = None
        if type and type != "all":
            try:
                txn_type = validate_type(type)
            except ValueError as exc:
                raise HTTPException(status_code=400, detail=str(exc)) from exc
        transactions = list_txns(
            db_path, member_id=member_id, txn_type=txn_type, start=start, end=end
        )
        return templates.TemplateResponse(
            request,
            "transactions.html",
            {
                "request": request,
                "member": member,
                "transactions": transactions,
                "loans": list_loans(db_path, member_id=member_id),
                "types": TRANSACTION_TYPES,
                "selected_type": txn_type or "all",
                "start": start or "",
                "end": end or "",
            },
        )

    @app.get("/members/{member_id}/ledger.json")
    def member_ledger(member_id: int):
        _resolve_member(member_id, None)
        transactions = list_txns(db_path, member_id=member_id)
        return {
            "member_id": member_id,
            "currency": settings.currency,
            "balance": str(compute_balance(transactions)),
            "total_contributions": str(compute_total_contributions(transactions)),
            "active_loans": count_active_loans(db_path, member_id=member_id),
            "contribution_series": [
                {"date": point["date"], "amount": str(point["amount"])}
                for point in build_contribution_series(transactions)
            ],
            "balance_series": [
                {"date": point["date"], "balance": str(point["balance"])}
                for point in build_balance_series(transactions)
            ],
        }

    @app.get("/members/{member_id}/export.csv")
    def export_csv(member_id: int, start: str | None = None, end: str | None = None):
        _resolve_member(member_id, None)
        transactions = list_txns(db_path, member_id=member_id, start=start, end=end)

        output = StringIO()
        writer = csv.writer(output)
        writer.writerow(["id", "member_id", "date", "type", "amount", "description"])
        for txn in transactions:
            writer.writerow(
                [
                    txn["id"],
                    txn["member_id"],
                    txn["transaction_date"],
                    txn["type"],
                    txn["amount"],
                    txn["description"] or "",
                ]
            )

        body = "\ufeff" + output.getvalue()
        filename = f"ledger-member-{member_id}.csv"
        return Response(
            content=body,
            media_type="text/csv; charset=utf-8",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )

    @app.get("/teller", response_class=HTMLResponse)
    def teller_form(request: Request, profile_id: int | None = None):
        _require(profile_id, TELLER_ROLES)
        return templates.TemplateResponse(
            request,
            "teller.html",
            {
                "request": request,
                "profile_id": profile_id,
                "members": list_members(db_path),
                "categories": list_expense_categories(db_path),
                "types": TELLER_TYPES,
                "frequencies": PAYMENT_FREQUENCIES,
                "loan_config": get_active_loan_config(db_path),
            },
        )

    @app.post("/teller/transactions")
    def teller_record(
        profile_id: str | None = Form(default=None),
        type: str = Form(...),
        amount: str = Form(...),
        member_id: str | None = Form(default=None),
        transaction_date: str | None = Form(default=None),
        description: str | None = Form(default=None),
        expense_category_id: str | None = Form(default=None),
        period: str | None = Form(default=None),
        interest_rate: str | None = Form(default=None),
        duration_days: str | None = Form(default=None),
        payment_frequency: str | None = Form(default=None),
    ):
        acting_profile = _optional_int(profile_id)
        try:
            record_transaction(
                db_path,
                recorded_by=acting_profile,
                txn_type=type,
                amount=amount,
                member_id=_optional_int(member_id),
                transaction_date=transaction_date,
                description=description,
                expense_category_id=_optional_int(expense_category_id),
                period=period,
                interest_rate=interest_rate,
                duration_days=duration_days,
                payment_frequency=payment_frequency,
            )
        except PermissionError as exc:
            raise HTTPException(status_code=403, detail=str(exc)) from exc
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return RedirectResponse(url=f"/teller?profile_id={acting_profile}", status_code=303)

    @app.post("/transactions/{txn_id}/delete")
    def delete_transaction(txn_id: int, profile_id: str | None = Form(default=None)):
        acting_profile = _optional_int(profile_id)
        _require(acting_profile, TELLER_ROLES)
        try:
            delete_txn(db_path, txn_id)
        except ValueError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        logger.info("transaction %s deleted by profile %s", txn_id, acting_profile)
        return RedirectResponse(url=f"/teller?profile_id={acting_profile}", status_code=303)

    @app.post("/loans/{loan_id}/status")
    def change_loan_status(
        loan_id: int,
        status: str = Form(...),
        due_date: str | None = Form(default=None),
        profile_id: str | None = Form(default=None),
    ):
        acting_profile = _optional_int(profile_id)
        _require(acting_profile, ADMIN_ROLES)
        loan = get_loan(db_path, loan_id)
        if loan is None:
            raise HTTPException(status_code=404, detail="loan not found")
        try:
            valid_status = validate_loan_status(status)
            new_due_date = parse_due_date(due_date)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        if new_due_date is None and valid_status == "active" and loan["due_date"] is None:
            new_due_date = default_due_date(loan["duration_days"])

        update_loan_status(db_path, loan_id, valid_status, changed_by=acting_profile)
        if new_due_date is not None:
            set_loan_due_date(db_path, loan_id, new_due_date)
        logger.info("loan %s set to %s by profile %s", loan_id, valid_status, acting_profile)
        return {
            "loan_id": loan_id,
            "status": valid_status,
            "due_date": new_due_date or loan["due_date"],
        }

    @app.get("/loans/overdue", response_class=HTMLResponse)
    def overdue_loans(request: Request, profile_id: int | None = None):
        _require(profile_id, STAFF_ROLES)
        return templates.TemplateResponse(
            request,
            "overdue_loans.html",
            {
                "request": request,
                "profile_id": profile_id,
                "loans": list_overdue_loans(db_path, today=dt_date.today().isoformat()),
            },
        )

    @app.get("/admin/loan-config", response_class=HTMLResponse)
    def loan_config_form(request: Request, profile_id: int | None = None):
        _require(profile_id, ADMIN_ROLES)
        return templates.TemplateResponse(
            request,
            "loan_config.html",
            {
                "request": request,
                "profile_id": profile_id,
                "config": get_active_loan_config(db_path),
                "frequencies": PAYMENT_FREQUENCIES,
            },
        )

    @app.post("/admin/loan-config")
    def loan_config_save(
        interest_rate: str = Form(...),
        default_duration_days: str = Form(...),
        payment_frequency: str = Form(...),
        profile_id: str | None = Form(default=None),
    ):
        acting_profile = _optional_int(profile_id)
        _require(acting_profile, ADMIN_ROLES)
        try:
            rate = parse_interest_rate(interest_rate)
            days = parse_duration_days(default_duration_days)
            frequency = validate_frequency(payment_frequency)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        save_loan_config(
            db_path,
            interest_rate=rate,
            default_duration_days=days,
            payment_frequency=frequency,
            created_by=acting_profile,
        )
        logger.info("loan config updated by profile %s", acting_profile)
        return RedirectResponse(
            url=f"/admin/loan-config?profile_id={acting_profile}", status_code=303
        )

    @app.get("/admin/expense-categories", response_class=HTMLResponse)
    def expense_categories_form(request: Request, profile_id: int | None = None):
        _require(profile_id, ADMIN_ROLES)
        return templates.TemplateResponse(
            request,
            "expense_categories.html",
            {
                "request": request,
                "profile_id": profile_id,
                "categories": list_expense_categories(db_path, include_inactive=True),
            },
        )

    @app.post("/admin/expense-categories")
    def expense_categories_create(
        name: str = Form(...),
        color: str = Form(default="#c69bcc"),
        profile_id: str | None = Form(default=None),
    ):
        acting_profile = _optional_int(profile_id)
        _require(acting_profile, ADMIN_ROLES)
        try:
            create_expense_category(db_path, name, color)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return RedirectResponse(
            url=f"/admin/expense-categories?profile_id={acting_profile}",
            status_code=303,
        )

    @app.post("/admin/expense-categories/{category_id}/toggle")
    def expense_categories_toggle(
        category_id: int,
        active: bool = Form(...),
        profile_id: str | None = Form(default=None),
    ):
        acting_profile = _optional_int(profile_id)
        _require(acting_profile, ADMIN_ROLES)
        try:
            set_expense_category_active(db_path, category_id, active)
        except ValueError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return RedirectResponse(
            url=f"/admin/expense-categories?profile_id={acting_profile}",
            status_code=303,
        )

    return app
