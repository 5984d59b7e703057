from .logging_setup import get_logger
from .logic import (
    default_period,
    parse_amount,
    parse_duration_days,
    parse_interest_rate,
    parse_transaction_date,
    require_role,
    validate_frequency,
    validate_teller_type,
)
from .models import DEFAULT_DESCRIPTIONS, TELLER_ROLES
from .repo import (
    create_loan_txn,
    create_txn,
    get_active_loan_config,
    get_profile_role,
)

logger = get_logger("mutuelle.teller")


def _loan_terms(db_path, interest_rate, duration_days, payment_frequency):
    config = get_active_loan_config(db_path)
    if not interest_rate:
        interest_rate = config["interest_rate"] if config else "0"
    if not duration_days:
        duration_days = config["default_duration_days"] if config else 30
    if not payment_frequency:
        payment_frequency = config["payment_frequency"] if config else "monthly"
    return (
        parse_interest_rate(str(interest_rate)),
        parse_duration_days(duration_days),
        validate_frequency(payment_frequency),
    )


def record_transaction(
    db_path,
    *,
    recorded_by: int | None,
    txn_type: str,
    amount: str,
    member_id: int | None = None,
    transaction_date: str | None = None,
    description: str | None = None,
    expense_category_id: int | None = None,
    period: str | None = None,
    interest_rate: str | None = None,
    duration_days: str | None = None,
    payment_frequency: str | None = None,
) -> int:
    """Record a teller transaction and return its id.

    Loans also create a pending loan row; unset terms fall back to the
    active loan configuration.
    """
    require_role(get_profile_role(db_path, recorded_by), TELLER_ROLES)
    valid_type = validate_teller_type(txn_type)
    valid_amount = parse_amount(amount)
    txn_date = parse_transaction_date(transaction_date)
    if valid_type != "expense" and member_id is None:
        raise ValueError("member required")

    terms = None
    if valid_type == "loan":
        terms = _loan_terms(db_path, interest_rate, duration_days, payment_frequency)
    if valid_type == "contribution":
        period = (period or "").strip() or default_period(txn_date)
    else:
        period = None

    description = (description or "").strip() or DEFAULT_DESCRIPTIONS[valid_type]
    if terms is not None:
        rate, days, frequency = terms
        txn_id, loan_id = create_loan_txn(
            db_path,
            member_id=member_id,
            amount=valid_amount,
            transaction_date=txn_date,
            interest_rate=rate,
            payment_frequency=frequency,
            duration_days=days,
            description=description,
            created_by=recorded_by,
        )
        logger.info("loan %s created pending for member %s", loan_id, member_id)
    else:
        txn_id = create_txn(
            db_path,
            member_id=member_id,
            txn_type=valid_type,
            amount=valid_amount,
            transaction_date=txn_date,
            description=description,
            created_by=recorded_by,
            expense_category_id=expense_category_id if valid_type == "expense" else None,
            period=period,
        )

    logger.info(
        "recorded %s of %s for member %s by profile %s",
        valid_type,
        valid_amount,
        member_id,
        recorded_by,
    )
    return txn_id
