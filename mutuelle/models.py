TRANSACTION_TYPES = (
    "contribution",
    "loan",
    "payment",
    "withdrawal",
    "interest",
    "expense",
)

# Types that move a member's balance up or down. Anything else is neutral.
CREDIT_TYPES = frozenset({"contribution", "payment", "interest"})
DEBIT_TYPES = frozenset({"withdrawal", "expense", "loan"})

# Tellers record everything except interest, which only comes from distribution.
TELLER_TYPES = ("contribution", "loan", "payment", "withdrawal", "expense")

ROLES = ("member", "admin", "treasurer", "teller")
TELLER_ROLES = frozenset({"teller", "admin"})
ADMIN_ROLES = frozenset({"admin"})
STAFF_ROLES = frozenset({"admin", "treasurer", "teller"})

MEMBER_STATUSES = ("active", "inactive", "suspended")
LOAN_STATUSES = ("pending", "approved", "active", "paid", "defaulted")
ACTIVE_LOAN_STATUSES = ("approved", "active")
PAYMENT_FREQUENCIES = ("weekly", "biweekly", "monthly")

DEFAULT_DESCRIPTIONS = {
    "contribution": "Contribution",
    "loan": "Prêt",
    "payment": "Paiement de prêt",
    "withdrawal": "Retrait",
    "expense": "Dépense",
}
