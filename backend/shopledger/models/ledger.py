from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow

TYPE_SALE = "SALE"
TYPE_EXPENSE = "EXPENSE"
VALID_TRANSACTION_TYPES = {TYPE_SALE, TYPE_EXPENSE}

PAYMENT_STATUS_PAID = "PAID"
PAYMENT_STATUS_DUE = "DUE"

METHOD_CASH = "CASH"
METHOD_ONLINE = "ONLINE"
METHOD_DUES = "DUES"

RECORD_STATUS_PAID = "PAID"
RECORD_STATUS_PENDING = "PENDING"


class Transaction(db.Model):
    """
    Ledger entry for one sale or one expense. Source of truth for every
    dashboard number.

    INVARIANTS:
    - amount_paid_cents + due_amount_cents == amount_cents, all >= 0
    - payment_status is DUE iff due_amount_cents > 0 (see refresh_payment_status)
    - cash_cents + online_cents + dues_cents == amount_cents
    - sum of PAID payment records == amount_paid_cents

    After creation only the payment columns change, and only through
    dues_service.collect_payment. The product snapshot never changes.
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.Index("ix_transactions_status_due", "payment_status", "due_amount_cents"),
        db.Index("ix_transactions_created", "created_at"),
        db.Index("ix_transactions_staff_created", "staff_id", "created_at"),
        db.Index("ix_transactions_type_created", "type", "created_at"),
        db.CheckConstraint("amount_paid_cents >= 0", name="amount_paid_non_negative"),
        db.CheckConstraint("due_amount_cents >= 0", name="due_amount_non_negative"),
        db.CheckConstraint(
            "amount_paid_cents + due_amount_cents = amount_cents",
            name="paid_plus_due_equals_amount",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    type = db.Column(db.String(16), nullable=False)

    # All amounts in cents
    amount_cents = db.Column(db.Integer, nullable=False)
    amount_paid_cents = db.Column(db.Integer, nullable=False, default=0)
    due_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    payment_status = db.Column(db.String(8), nullable=False, default=PAYMENT_STATUS_PAID)

    # Per-method breakdown, kept current by collections
    cash_cents = db.Column(db.Integer, nullable=False, default=0)
    online_cents = db.Column(db.Integer, nullable=False, default=0)
    dues_cents = db.Column(db.Integer, nullable=False, default=0)

    staff_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    # Plain reference: products may be deleted after the sale
    product_id = db.Column(db.Integer, nullable=True, index=True)

    # Immutable product snapshot taken at sale time
    snapshot_name = db.Column(db.String(255), nullable=True)
    snapshot_category = db.Column(db.String(16), nullable=True)
    snapshot_sub_category = db.Column(db.String(64), nullable=True)
    snapshot_image_url = db.Column(db.String(1024), nullable=True)

    # Customer contact, present whenever money is owed
    customer_name = db.Column(db.String(128), nullable=True)
    customer_phone = db.Column(db.String(10), nullable=True)
    due_date = db.Column(db.Date, nullable=True, index=True)

    description = db.Column(db.Text, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    staff = db.relationship("User", backref=db.backref("transactions", lazy=True))
    payment_records = db.relationship(
        "PaymentRecord",
        back_populates="transaction",
        order_by="PaymentRecord.id",
        lazy="selectin",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def refresh_payment_status(self) -> None:
        """Recompute the cached status from the due amount."""
        self.payment_status = PAYMENT_STATUS_DUE if self.due_amount_cents > 0 else PAYMENT_STATUS_PAID

    @property
    def is_due(self) -> bool:
        return self.payment_status == PAYMENT_STATUS_DUE

    def product_snapshot(self) -> dict | None:
        if self.type != TYPE_SALE:
            return None
        return {
            "name": self.snapshot_name,
            "category": self.snapshot_category,
            "sub_category": self.snapshot_sub_category,
            "url": self.snapshot_image_url,
        }

    def customer(self) -> dict | None:
        if not self.customer_name and not self.customer_phone:
            return None
        return {"name": self.customer_name, "phone_number": self.customer_phone}

    def to_dict(self, include_payments: bool = True) -> dict:
        data = {
            "id": self.id,
            "type": self.type,
            "amount_cents": self.amount_cents,
            "amount_paid_cents": self.amount_paid_cents,
            "due_amount_cents": self.due_amount_cents,
            "payment_status": self.payment_status,
            "payment_breakdown": {
                "cash": self.cash_cents,
                "online": self.online_cents,
                "dues": self.dues_cents,
            },
            "staff": self.staff.to_ref() if self.staff else {"id": self.staff_id},
            "product_id": self.product_id,
            "product_snapshot": self.product_snapshot(),
            "customer": self.customer(),
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "description": self.description,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_payments:
            data["payment_records"] = [record.to_dict() for record in self.payment_records]
        return data


class PaymentRecord(db.Model):
    """
    One movement of money (or one promise of money) against a transaction.

    IMMUTABLE: rows are never updated or deleted. Collecting a due appends a
    new PAID row; the PENDING row written for a DUES split entry stays as the
    record of what was originally owed.
    """
    __tablename__ = "payment_records"
    __table_args__ = (
        db.Index("ix_payment_records_created", "created_at"),
        db.Index("ix_payment_records_txn_status", "transaction_id", "status"),
        db.CheckConstraint("amount_cents >= 0", name="amount_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey("transactions.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, nullable=True)

    method = db.Column(db.String(16), nullable=False, index=True)
    amount_cents = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(16), nullable=False, default=RECORD_STATUS_PAID)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    transaction = db.relationship("Transaction", back_populates="payment_records")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_id": self.transaction_id,
            "product_id": self.product_id,
            "method": self.method,
            "amount_cents": self.amount_cents,
            "status": self.status,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }
