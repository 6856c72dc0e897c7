# Overview: Ledger store reads and invariant checks over transactions and payment records.

"""
Ledger invariants (authoritative)

- amount_paid + due == amount, nothing negative.
- payment_status is DUE exactly when due > 0.
- cash + online + dues == amount.
- Sales only: sum of PAID payment records == amount_paid (expenses carry no records).
- A SALE whose product row still exists leaves that product OUT_OF_STOCK and hidden.
"""

from __future__ import annotations

from datetime import datetime

from flask import current_app
from sqlalchemy import func

from ..errors import ConsistencyError
from ..extensions import db
from ..models import PaymentRecord, Product, Transaction
from ..models.inventory import STOCK_OUT
from ..models.ledger import (
    PAYMENT_STATUS_DUE,
    PAYMENT_STATUS_PAID,
    RECORD_STATUS_PAID,
    TYPE_SALE,
    VALID_TRANSACTION_TYPES,
)
from ..validation import normalize_pagination, pagination_meta, require_choice


def paid_records_total(transaction_id: int) -> int:
    total = db.session.query(
        func.coalesce(func.sum(PaymentRecord.amount_cents), 0)
    ).filter(
        PaymentRecord.transaction_id == transaction_id,
        PaymentRecord.status == RECORD_STATUS_PAID,
    ).scalar()
    return int(total or 0)


def find_violations(txn: Transaction) -> list[str]:
    """Return human-readable invariant violations for one transaction (empty when consistent)."""
    problems = []

    if txn.amount_paid_cents < 0 or txn.due_amount_cents < 0:
        problems.append("negative paid or due amount")

    if txn.amount_paid_cents + txn.due_amount_cents != txn.amount_cents:
        problems.append(
            f"paid {txn.amount_paid_cents} + due {txn.due_amount_cents} != amount {txn.amount_cents}"
        )

    expected_status = PAYMENT_STATUS_DUE if txn.due_amount_cents > 0 else PAYMENT_STATUS_PAID
    if txn.payment_status != expected_status:
        problems.append(f"payment_status {txn.payment_status} but due is {txn.due_amount_cents}")

    if txn.cash_cents + txn.online_cents + txn.dues_cents != txn.amount_cents:
        problems.append("payment breakdown does not sum to amount")

    if txn.type != TYPE_SALE:
        return problems

    records_total = paid_records_total(txn.id)
    if records_total != txn.amount_paid_cents:
        problems.append(f"paid records total {records_total} != amount_paid {txn.amount_paid_cents}")

    if txn.product_id is not None:
        product = db.session.get(Product, txn.product_id)
        if product is not None and (product.stock_status != STOCK_OUT or product.is_online):
            problems.append(f"product {product.id} sold but still available")

    return problems


def assert_consistent(txn: Transaction) -> None:
    """
    Raise ConsistencyError when a committed transaction breaks a ledger
    invariant. Nothing is rolled back or compensated here; the error is
    logged for an operator to reconcile.
    """
    problems = find_violations(txn)
    if problems:
        current_app.logger.error(
            "Ledger inconsistency on transaction %s: %s", txn.id, "; ".join(problems)
        )
        raise ConsistencyError(
            "Ledger inconsistency detected; manual reconciliation required",
            details={"transaction_id": txn.id, "problems": problems},
        )


def audit_ledger() -> list[dict]:
    """Check every transaction; returns [{transaction_id, problems}] for the inconsistent ones."""
    report = []
    for txn in db.session.query(Transaction).order_by(Transaction.id.asc()).yield_per(200):
        problems = find_violations(txn)
        if problems:
            report.append({"transaction_id": txn.id, "problems": problems})
    return report


def list_transactions(
    *,
    since: datetime | None = None,
    txn_type: str | None = None,
    page=None,
    limit=None,
    max_limit: int = 100,
) -> dict:
    """
    Transaction history, newest first, with payment records.

    since: inclusive lower bound on created_at (None for all time).
    """
    page, limit = normalize_pagination(page, limit, max_limit=max_limit)

    query = db.session.query(Transaction)
    if since is not None:
        query = query.filter(Transaction.created_at >= since)
    if txn_type:
        query = query.filter(Transaction.type == require_choice(txn_type, "type", VALID_TRANSACTION_TYPES))

    total = query.count()
    rows = (
        query.order_by(Transaction.created_at.desc(), Transaction.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "transactions": [txn.to_dict() for txn in rows],
        "pagination": pagination_meta(total, page, limit),
    }
