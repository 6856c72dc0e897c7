# Overview: Service-layer operations for sales; encapsulates business logic and database work.

"""
Sale Reconciliation Service

Turns one sale request into one committed unit of work:
- a SALE Transaction carrying an immutable product snapshot
- its PaymentRecords (one per tender actually used)
- the product's flip to OUT_OF_STOCK and hidden (availability_service.mark_sold)

All three land in a single database transaction. If another sale wins the
product first, the gate's conditional update matches nothing, the whole unit
rolls back and the caller gets ConflictError.

PAYMENT SHAPES:
- Single method: amount_paid_cents (0..price) + payment_method (CASH|ONLINE).
  Any remainder becomes a due owed by a named customer.
- Split: payment_methods=[{method, amount_cents, dues_details?}]; amounts must
  sum to the price within SPLIT_TOLERANCE_CENTS.
- Neither given: fully paid in CASH.
"""

from __future__ import annotations

from datetime import date

from flask import current_app

from ..errors import ValidationError
from ..extensions import db
from ..models import PaymentRecord, Transaction
from ..models.ledger import (
    METHOD_CASH,
    METHOD_DUES,
    METHOD_ONLINE,
    RECORD_STATUS_PAID,
    RECORD_STATUS_PENDING,
    TYPE_EXPENSE,
    TYPE_SALE,
)
from ..validation import coerce_cents, coerce_date, require_choice, require_text, validate_phone
from .availability_service import ensure_available, mark_sold
from .concurrency import begin_write, run_with_retry
from .ledger_service import assert_consistent


# Largest allowed gap between the split total and the price (one cent)
SPLIT_TOLERANCE_CENTS = 1

SINGLE_PAYMENT_METHODS = {METHOD_CASH, METHOD_ONLINE}
SPLIT_PAYMENT_METHODS = {METHOD_CASH, METHOD_ONLINE, METHOD_DUES}


# =============================================================================
# INPUT HELPERS
# =============================================================================

def _require_product_id(value) -> int:
    if isinstance(value, bool):
        raise ValidationError("product_id must be an integer")
    try:
        product_id = int(value)
    except (TypeError, ValueError):
        raise ValidationError("product_id is required")
    if product_id < 1:
        raise ValidationError("product_id must be a positive integer")
    return product_id


def _due_customer(details, due_date_value) -> tuple[str, str, date]:
    """Validate who owes the money and by when."""
    if not isinstance(details, dict):
        raise ValidationError("Customer name and phone number are required when payment is due")
    name = details.get("name")
    if name is None or not str(name).strip():
        raise ValidationError("Customer name is required when payment is due", details={"field": "name"})
    phone = validate_phone(details.get("phone_number"))
    if due_date_value is None:
        raise ValidationError("due_date is required when payment is due", details={"field": "due_date"})
    return require_text(name, "name", max_length=128), phone, coerce_date(due_date_value, "due_date")


def _optional_customer(details) -> tuple[str | None, str | None]:
    """Contact details on a fully paid sale are optional, but validated when present."""
    if not isinstance(details, dict):
        return None, None
    name = details.get("name")
    phone = details.get("phone_number")
    name = require_text(name, "name", max_length=128) if name and str(name).strip() else None
    phone = validate_phone(phone) if phone not in (None, "") else None
    return name, phone


def _snapshot_fields(product) -> dict:
    return {
        "product_id": product.id,
        "snapshot_name": product.name,
        "snapshot_category": product.category,
        "snapshot_sub_category": product.sub_category,
        "snapshot_image_url": product.primary_image_url or "",
    }


def _sale_price(data: dict, product) -> int:
    if data.get("price_cents") is None:
        return product.price_cents
    return coerce_cents(data.get("price_cents"), "price_cents")


# =============================================================================
# PLANNING (pure validation, no writes)
# =============================================================================

def _plan_single(data: dict, price_cents: int) -> dict:
    """
    Resolve a single-method sale into the transaction fields and its one
    PAID record (or none when nothing was paid up front).
    """
    if data.get("amount_paid_cents") is None:
        paid = price_cents
    else:
        paid = coerce_cents(data.get("amount_paid_cents"), "amount_paid_cents")
    if paid > price_cents:
        raise ValidationError(
            "Amount paid cannot exceed sale price",
            details={"amount_paid_cents": paid, "price_cents": price_cents},
        )

    method = None
    if paid > 0:
        method = require_choice(data.get("payment_method") or METHOD_CASH, "payment_method", SINGLE_PAYMENT_METHODS)

    due = price_cents - paid
    fields = {
        "amount_cents": price_cents,
        "amount_paid_cents": paid,
        "due_amount_cents": due,
        "cash_cents": paid if method == METHOD_CASH else 0,
        "online_cents": paid if method == METHOD_ONLINE else 0,
        "dues_cents": due,
    }

    if due > 0:
        name, phone, due_date = _due_customer(data.get("customer"), data.get("due_date"))
        fields.update(customer_name=name, customer_phone=phone, due_date=due_date)
    else:
        name, phone = _optional_customer(data.get("customer"))
        fields.update(customer_name=name, customer_phone=phone)

    records = [(method, paid, RECORD_STATUS_PAID)] if paid > 0 else []
    return {"fields": fields, "records": records}


def _plan_split(entries, price_cents: int, data: dict) -> dict:
    """
    Resolve a multi-method sale.

    Every entry becomes one PaymentRecord: PAID for CASH/ONLINE, PENDING for
    DUES. A residue of at most SPLIT_TOLERANCE_CENTS is absorbed by the last
    entry so the records sum exactly to the price. The first DUES entry names
    the customer the due is tracked under.
    """
    if not isinstance(entries, list) or not entries:
        raise ValidationError("payment_methods must be a non-empty list")

    planned = []
    customer = None
    for index, entry in enumerate(entries):
        if not isinstance(entry, dict):
            raise ValidationError("Each payment method must have method and amount_cents")
        if not entry.get("method") or entry.get("amount_cents") is None:
            raise ValidationError("Each payment method must have method and amount_cents")
        method = require_choice(entry.get("method"), "payment_methods.method", SPLIT_PAYMENT_METHODS)
        amount = coerce_cents(entry.get("amount_cents"), f"payment_methods[{index}].amount_cents", allow_zero=False)

        if method == METHOD_DUES:
            details = entry.get("dues_details")
            due_date_value = details.get("due_date") if isinstance(details, dict) else None
            resolved = _due_customer(details, due_date_value or data.get("due_date"))
            if customer is None:
                customer = resolved

        planned.append([method, amount])

    total = sum(amount for _, amount in planned)
    if abs(total - price_cents) > SPLIT_TOLERANCE_CENTS:
        raise ValidationError(
            "Sum of payment methods must equal sale price",
            details={"sum_cents": total, "price_cents": price_cents},
        )
    residue = price_cents - total
    if residue:
        planned[-1][1] += residue
        if planned[-1][1] <= 0:
            raise ValidationError("Sum of payment methods must equal sale price")

    breakdown = {METHOD_CASH: 0, METHOD_ONLINE: 0, METHOD_DUES: 0}
    for method, amount in planned:
        breakdown[method] += amount

    fields = {
        "amount_cents": price_cents,
        "amount_paid_cents": breakdown[METHOD_CASH] + breakdown[METHOD_ONLINE],
        "due_amount_cents": breakdown[METHOD_DUES],
        "cash_cents": breakdown[METHOD_CASH],
        "online_cents": breakdown[METHOD_ONLINE],
        "dues_cents": breakdown[METHOD_DUES],
    }
    if customer is not None:
        name, phone, due_date = customer
        fields.update(customer_name=name, customer_phone=phone, due_date=due_date)

    records = [
        (method, amount, RECORD_STATUS_PENDING if method == METHOD_DUES else RECORD_STATUS_PAID)
        for method, amount in planned
    ]
    return {"fields": fields, "records": records}


# =============================================================================
# SALE RECORDING
# =============================================================================

def _commit_sale(product_id: int, staff_id: int, plan: dict) -> Transaction:
    """Write the planned sale and flip the product, all in one transaction."""
    def _op():
        begin_write()

        # Re-read inside the write transaction; a retried attempt sees the winner.
        product = ensure_available(product_id)

        txn = Transaction(type=TYPE_SALE, staff_id=staff_id, **_snapshot_fields(product), **plan["fields"])
        txn.refresh_payment_status()
        db.session.add(txn)
        db.session.flush()

        for method, amount, status in plan["records"]:
            db.session.add(PaymentRecord(
                transaction_id=txn.id,
                product_id=product_id,
                method=method,
                amount_cents=amount,
                status=status,
                created_by_user_id=staff_id,
            ))

        mark_sold(product_id)

        db.session.commit()
        return txn

    txn = run_with_retry(_op)

    current_app.logger.info(
        "Sale recorded: transaction=%s product=%s amount=%s paid=%s due=%s staff=%s",
        txn.id, product_id, txn.amount_cents, txn.amount_paid_cents, txn.due_amount_cents, staff_id,
    )

    assert_consistent(txn)
    return txn


def record_sale(data: dict, *, staff_id: int) -> Transaction:
    """
    Record a sale of one product.

    Dispatches to the split-payment path when payment_methods is present.

    Raises:
        NotFoundError: product does not exist
        ConflictError: product already sold (including losing a concurrent race)
        ValidationError: bad amounts, method, customer or due date
        ConsistencyError: committed ledger failed its invariant check
    """
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload")

    if data.get("payment_methods") is not None:
        return record_split_sale(data, staff_id=staff_id)

    product_id = _require_product_id(data.get("product_id"))
    product = ensure_available(product_id)
    plan = _plan_single(data, _sale_price(data, product))
    return _commit_sale(product_id, staff_id, plan)


def record_split_sale(data: dict, *, staff_id: int) -> Transaction:
    """Record a sale paid across several methods (see _plan_split)."""
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload")

    product_id = _require_product_id(data.get("product_id"))
    product = ensure_available(product_id)
    plan = _plan_split(data.get("payment_methods"), _sale_price(data, product), data)
    return _commit_sale(product_id, staff_id, plan)


# =============================================================================
# EXPENSES
# =============================================================================

def record_expense(data: dict, *, staff_id: int) -> Transaction:
    """Record a shop expense; always fully paid and never linked to a product."""
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload")

    amount = coerce_cents(data.get("amount_cents"), "amount_cents", allow_zero=False)
    description = require_text(data.get("description"), "description", max_length=1000)

    txn = Transaction(
        type=TYPE_EXPENSE,
        amount_cents=amount,
        amount_paid_cents=amount,
        due_amount_cents=0,
        cash_cents=amount,
        online_cents=0,
        dues_cents=0,
        staff_id=staff_id,
        description=description,
    )
    txn.refresh_payment_status()
    db.session.add(txn)
    db.session.commit()

    current_app.logger.info("Expense recorded: transaction=%s amount=%s staff=%s", txn.id, amount, staff_id)
    return txn
