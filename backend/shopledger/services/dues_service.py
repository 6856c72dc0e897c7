# Overview: Service-layer operations for dues; encapsulates business logic and database work.

"""
Dues Lifecycle Service

A due is a SALE transaction whose payment_status is DUE. The transaction
owns the balance; this module is the only place it moves after the sale.

LIFECYCLE:
- DUE -> DUE      partial collection (due shrinks, never below 0)
- DUE -> PAID     collection of the full remaining balance (one-way)
- PAID            terminal; further collections are rejected with ConflictError

CONCURRENCY:
Collections lock the row (BEGIN IMMEDIATE on SQLite, SELECT ... FOR UPDATE
elsewhere) and write through the mapper's version_id. A writer that lost a
race gets StaleDataError, run_with_retry re-reads the current balance and the
checks run again against it, so concurrent collections never lose an update.
"""

from __future__ import annotations

from datetime import datetime

from flask import current_app
from sqlalchemy import or_

from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import PaymentRecord, Transaction
from ..models.ledger import (
    METHOD_CASH,
    METHOD_ONLINE,
    PAYMENT_STATUS_DUE,
    RECORD_STATUS_PAID,
)
from ..time_utils import start_of_day, utcnow
from ..validation import (
    coerce_cents,
    coerce_date,
    contains_pattern,
    normalize_pagination,
    optional_text,
    pagination_meta,
    require_choice,
    validate_phone,
)
from .concurrency import begin_write, lock_for_update, run_with_retry
from .ledger_service import assert_consistent


COLLECTION_METHODS = {METHOD_CASH, METHOD_ONLINE}

BUCKET_PENDING = "PENDING"   # nothing paid yet
BUCKET_PARTIAL = "PARTIAL"   # something paid, balance remains


def _dues_query():
    return db.session.query(Transaction).filter(
        Transaction.payment_status == PAYMENT_STATUS_DUE,
        Transaction.due_amount_cents > 0,
    )


# =============================================================================
# READS
# =============================================================================

def list_dues(*, search_term: str | None = None, page=None, limit=None, max_limit: int = 100) -> dict:
    """Outstanding dues, newest first, optionally filtered by customer name or phone substring."""
    page, limit = normalize_pagination(page, limit, max_limit=max_limit)

    query = _dues_query()
    if search_term and search_term.strip():
        pattern = contains_pattern(search_term.strip())
        query = query.filter(or_(
            Transaction.customer_name.ilike(pattern, escape="\\"),
            Transaction.customer_phone.ilike(pattern, escape="\\"),
        ))

    total = query.count()
    rows = (
        query.order_by(Transaction.created_at.desc(), Transaction.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {"dues": [txn.to_dict() for txn in rows], "pagination": pagination_meta(total, page, limit)}


def get_due(transaction_id: int) -> Transaction:
    txn = db.session.get(Transaction, transaction_id)
    if not txn or txn.payment_status != PAYMENT_STATUS_DUE:
        raise NotFoundError("Dues record not found or already paid", details={"transaction_id": transaction_id})
    return txn


def list_overdue(*, now: datetime | None = None, page=None, limit=None, max_limit: int = 100) -> dict:
    """Dues whose due date is before today, most urgent (oldest due date) first."""
    page, limit = normalize_pagination(page, limit, max_limit=max_limit)
    today = start_of_day(now or utcnow()).date()

    query = db.session.query(Transaction).filter(
        Transaction.payment_status == PAYMENT_STATUS_DUE,
        Transaction.due_date.isnot(None),
        Transaction.due_date < today,
    )
    total = query.count()
    rows = (
        query.order_by(Transaction.due_date.asc(), Transaction.id.asc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {"overdue_dues": [txn.to_dict() for txn in rows], "pagination": pagination_meta(total, page, limit)}


def due_statistics(*, start: datetime | None = None, end: datetime | None = None) -> dict:
    """
    Aggregate open dues created in [start, end].

    total_collected_cents is what has already been paid on those still-open
    sales, not all money ever collected.
    """
    query = db.session.query(Transaction).filter(Transaction.payment_status == PAYMENT_STATUS_DUE)
    if start is not None:
        query = query.filter(Transaction.created_at >= start)
    if end is not None:
        query = query.filter(Transaction.created_at <= end)

    stats = {
        "total_dues_records": 0,
        "total_outstanding_cents": 0,
        "total_collected_cents": 0,
        "status_breakdown": {
            BUCKET_PENDING: {"count": 0, "amount_cents": 0},
            BUCKET_PARTIAL: {"count": 0, "amount_cents": 0},
        },
    }

    for txn in query.all():
        stats["total_dues_records"] += 1
        stats["total_outstanding_cents"] += txn.due_amount_cents
        stats["total_collected_cents"] += txn.amount_paid_cents

        bucket = BUCKET_PENDING if txn.amount_paid_cents == 0 else BUCKET_PARTIAL
        stats["status_breakdown"][bucket]["count"] += 1
        stats["status_breakdown"][bucket]["amount_cents"] += txn.due_amount_cents

    return stats


# =============================================================================
# WRITES
# =============================================================================

def collect_payment(transaction_id: int, amount_cents, method, *, user_id: int) -> Transaction:
    """
    Apply a customer payment against an open due.

    Raises:
        ValidationError: amount <= 0, unknown method, or amount above the remaining due
        NotFoundError: transaction does not exist
        ConflictError: transaction is not DUE (already settled)
        ConsistencyError: committed ledger failed its invariant check
    """
    amount = coerce_cents(amount_cents, "amount_cents", allow_zero=False)
    method = require_choice(method, "payment_method", COLLECTION_METHODS)

    def _op():
        begin_write()

        txn = (
            lock_for_update(db.session.query(Transaction).filter(Transaction.id == transaction_id))
            .populate_existing()
            .first()
        )
        if not txn:
            raise NotFoundError("Transaction not found", details={"transaction_id": transaction_id})

        if txn.payment_status != PAYMENT_STATUS_DUE:
            raise ConflictError("This transaction has no pending dues", details={"transaction_id": transaction_id})

        if amount > txn.due_amount_cents:
            raise ValidationError(
                "Payment exceeds due amount",
                details={"amount_cents": amount, "due_amount_cents": txn.due_amount_cents},
            )

        db.session.add(PaymentRecord(
            transaction_id=txn.id,
            product_id=txn.product_id,
            method=method,
            amount_cents=amount,
            status=RECORD_STATUS_PAID,
            created_by_user_id=user_id,
        ))

        txn.amount_paid_cents += amount
        txn.due_amount_cents -= amount
        txn.dues_cents -= amount
        if method == METHOD_CASH:
            txn.cash_cents += amount
        else:
            txn.online_cents += amount
        txn.refresh_payment_status()

        # version_id guards the UPDATE; a concurrent winner raises StaleDataError here.
        db.session.commit()
        return txn

    txn = run_with_retry(_op)

    current_app.logger.info(
        "Due collected: transaction=%s amount=%s method=%s remaining=%s status=%s by=%s",
        txn.id, amount, method, txn.due_amount_cents, txn.payment_status, user_id,
    )

    assert_consistent(txn)
    return txn


def update_due_details(transaction_id: int, data: dict) -> Transaction:
    """
    Correct the customer contact or due date on an open due.

    Only fields present in data change; settled transactions are not editable.
    """
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload")

    updates = {}
    name = optional_text(data.get("name"), "name", max_length=128)
    if name:
        updates["customer_name"] = name
    if data.get("phone_number") not in (None, ""):
        updates["customer_phone"] = validate_phone(data.get("phone_number"))
    if data.get("due_date") not in (None, ""):
        updates["due_date"] = coerce_date(data.get("due_date"), "due_date")

    if not updates:
        raise ValidationError("Provide at least one of name, phone_number or due_date")

    def _op():
        txn = db.session.get(Transaction, transaction_id, populate_existing=True)
        if not txn or txn.payment_status != PAYMENT_STATUS_DUE:
            raise NotFoundError("Dues record not found or already paid", details={"transaction_id": transaction_id})

        for field, value in updates.items():
            setattr(txn, field, value)

        db.session.commit()
        return txn

    return run_with_retry(_op)
