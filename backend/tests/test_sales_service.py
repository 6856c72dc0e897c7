"""
Sale reconciliation tests.

Verifies:
- Single-method sales split price into paid + due correctly
- Split payments sum to the price within one cent, residue absorbed
- Product flips to OUT_OF_STOCK and hidden in the same unit of work
- Failed validation writes nothing
- Snapshot survives product deletion
- A sale whose stock flip did not apply surfaces as ConsistencyError
"""

import pytest

from shopledger.errors import ConflictError, ConsistencyError, NotFoundError, ValidationError
from shopledger.models import PaymentRecord, Product, Transaction
from shopledger.models.inventory import STOCK_IN, STOCK_OUT
from shopledger.services import ledger_service, products_service, sales_service


CUSTOMER = {"name": "Ravi Kumar", "phone_number": "9876543210"}


def _count(db_session, model):
    return db_session.query(model).count()


# =============================================================================
# SINGLE-METHOD SALES
# =============================================================================


class TestSingleMethodSale:

    def test_fully_paid_sale(self, db_session, staff, make_product):
        product = make_product(price_cents=100000)

        txn = sales_service.record_sale(
            {"product_id": product.id, "price_cents": 100000, "amount_paid_cents": 100000, "payment_method": "ONLINE"},
            staff_id=staff.id,
        )

        assert txn.payment_status == "PAID"
        assert txn.amount_paid_cents == 100000
        assert txn.due_amount_cents == 0
        assert txn.online_cents == 100000
        assert txn.cash_cents == 0
        assert [(r.method, r.amount_cents, r.status) for r in txn.payment_records] == [("ONLINE", 100000, "PAID")]

        db_session.refresh(product)
        assert product.stock_status == STOCK_OUT
        assert product.is_online is False

    def test_partial_payment_creates_due(self, db_session, staff, make_product):
        product = make_product(price_cents=100000)

        txn = sales_service.record_sale(
            {
                "product_id": product.id,
                "price_cents": 100000,
                "amount_paid_cents": 40000,
                "payment_method": "CASH",
                "customer": CUSTOMER,
                "due_date": "2026-11-01",
            },
            staff_id=staff.id,
        )

        assert txn.payment_status == "DUE"
        assert txn.amount_paid_cents == 40000
        assert txn.due_amount_cents == 60000
        assert txn.customer_name == "Ravi Kumar"
        assert txn.customer_phone == "9876543210"
        assert txn.due_date.isoformat() == "2026-11-01"
        assert len(txn.payment_records) == 1
        assert txn.payment_records[0].amount_cents == 40000

    def test_nothing_paid_creates_no_payment_record(self, db_session, staff, make_product):
        product = make_product(price_cents=50000)

        txn = sales_service.record_sale(
            {"product_id": product.id, "amount_paid_cents": 0, "customer": CUSTOMER, "due_date": "2026-11-01"},
            staff_id=staff.id,
        )

        assert txn.due_amount_cents == 50000
        assert txn.payment_records == []
        assert ledger_service.find_violations(txn) == []

    def test_defaults_to_full_cash_payment(self, db_session, staff, make_product):
        product = make_product(price_cents=75000)

        txn = sales_service.record_sale({"product_id": product.id}, staff_id=staff.id)

        assert txn.amount_cents == 75000
        assert txn.cash_cents == 75000
        assert txn.payment_status == "PAID"
        assert txn.payment_records[0].method == "CASH"

    def test_snapshot_captured(self, db_session, staff, make_product):
        product = make_product(category="Women", sub_category="kurtis", name="Blue Kurti")

        txn = sales_service.record_sale({"product_id": product.id}, staff_id=staff.id)

        assert txn.product_snapshot() == {
            "name": "Blue Kurti",
            "category": "Women",
            "sub_category": "kurtis",
            "url": product.images[0]["url"],
        }


# =============================================================================
# SINGLE-METHOD FAILURES
# =============================================================================


class TestSaleValidation:

    def test_unknown_product(self, db_session, staff):
        with pytest.raises(NotFoundError):
            sales_service.record_sale({"product_id": 9999}, staff_id=staff.id)

    def test_already_sold(self, db_session, staff, make_product):
        product = make_product()
        sales_service.record_sale({"product_id": product.id}, staff_id=staff.id)

        with pytest.raises(ConflictError) as exc:
            sales_service.record_sale({"product_id": product.id}, staff_id=staff.id)

        assert exc.value.status_code == 409
        assert _count(db_session, Transaction) == 1

    def test_paid_above_price(self, db_session, staff, make_product):
        product = make_product(price_cents=100000)

        with pytest.raises(ValidationError):
            sales_service.record_sale(
                {"product_id": product.id, "price_cents": 100000, "amount_paid_cents": 100001},
                staff_id=staff.id,
            )

    @pytest.mark.parametrize("customer", [None, {"name": "Ravi"}, {"phone_number": "9876543210"}])
    def test_due_requires_customer(self, db_session, staff, make_product, customer):
        product = make_product(price_cents=100000)

        with pytest.raises(ValidationError):
            sales_service.record_sale(
                {"product_id": product.id, "amount_paid_cents": 40000, "customer": customer, "due_date": "2026-11-01"},
                staff_id=staff.id,
            )

    @pytest.mark.parametrize("phone", ["98765", "98765432100", "98765abcde"])
    def test_due_requires_ten_digit_phone(self, db_session, staff, make_product, phone):
        product = make_product(price_cents=100000)

        with pytest.raises(ValidationError) as exc:
            sales_service.record_sale(
                {
                    "product_id": product.id,
                    "amount_paid_cents": 40000,
                    "customer": {"name": "Ravi", "phone_number": phone},
                    "due_date": "2026-11-01",
                },
                staff_id=staff.id,
            )

        assert exc.value.message == "Phone number must be 10 digits"

    def test_due_requires_due_date(self, db_session, staff, make_product):
        product = make_product(price_cents=100000)

        with pytest.raises(ValidationError):
            sales_service.record_sale(
                {"product_id": product.id, "amount_paid_cents": 40000, "customer": CUSTOMER},
                staff_id=staff.id,
            )

    def test_fractional_amount_rejected(self, db_session, staff, make_product):
        product = make_product(price_cents=100000)

        with pytest.raises(ValidationError):
            sales_service.record_sale(
                {"product_id": product.id, "amount_paid_cents": 400.5},
                staff_id=staff.id,
            )

    def test_failed_validation_writes_nothing(self, db_session, staff, make_product):
        product = make_product(price_cents=100000)

        with pytest.raises(ValidationError):
            sales_service.record_sale(
                {"product_id": product.id, "amount_paid_cents": 40000, "payment_method": "CHEQUE",
                 "customer": CUSTOMER, "due_date": "2026-11-01"},
                staff_id=staff.id,
            )

        assert _count(db_session, Transaction) == 0
        assert _count(db_session, PaymentRecord) == 0
        db_session.refresh(product)
        assert product.stock_status == STOCK_IN
        assert product.is_online is True


# =============================================================================
# SPLIT PAYMENTS
# =============================================================================


class TestSplitSale:

    def test_cash_and_online_split(self, db_session, staff, make_product):
        product = make_product(price_cents=50000)

        txn = sales_service.record_sale(
            {
                "product_id": product.id,
                "price_cents": 50000,
                "payment_methods": [
                    {"method": "CASH", "amount_cents": 20000},
                    {"method": "ONLINE", "amount_cents": 30000},
                ],
            },
            staff_id=staff.id,
        )

        assert txn.payment_status == "PAID"
        assert (txn.cash_cents, txn.online_cents, txn.dues_cents) == (20000, 30000, 0)
        assert sorted((r.method, r.amount_cents, r.status) for r in txn.payment_records) == [
            ("CASH", 20000, "PAID"),
            ("ONLINE", 30000, "PAID"),
        ]

    def test_split_with_dues_leaves_balance_open(self, db_session, staff, make_product):
        product = make_product(price_cents=50000)

        txn = sales_service.record_split_sale(
            {
                "product_id": product.id,
                "price_cents": 50000,
                "payment_methods": [
                    {"method": "CASH", "amount_cents": 20000},
                    {"method": "DUES", "amount_cents": 30000,
                     "dues_details": {**CUSTOMER, "due_date": "2026-11-01"}},
                ],
            },
            staff_id=staff.id,
        )

        assert txn.payment_status == "DUE"
        assert txn.amount_paid_cents == 20000
        assert txn.due_amount_cents == 30000
        assert txn.customer_phone == "9876543210"
        statuses = {r.method: r.status for r in txn.payment_records}
        assert statuses == {"CASH": "PAID", "DUES": "PENDING"}
        assert ledger_service.find_violations(txn) == []

    def test_split_off_by_more_than_a_cent_rejected(self, db_session, staff, make_product):
        product = make_product(price_cents=50000)

        with pytest.raises(ValidationError) as exc:
            sales_service.record_sale(
                {
                    "product_id": product.id,
                    "price_cents": 50000,
                    "payment_methods": [
                        {"method": "CASH", "amount_cents": 20000},
                        {"method": "ONLINE", "amount_cents": 29998},
                    ],
                },
                staff_id=staff.id,
            )

        assert exc.value.message == "Sum of payment methods must equal sale price"
        assert _count(db_session, Transaction) == 0

    def test_one_cent_residue_absorbed_by_last_entry(self, db_session, staff, make_product):
        product = make_product(price_cents=50000)

        txn = sales_service.record_sale(
            {
                "product_id": product.id,
                "price_cents": 50000,
                "payment_methods": [
                    {"method": "CASH", "amount_cents": 20000},
                    {"method": "ONLINE", "amount_cents": 29999},
                ],
            },
            staff_id=staff.id,
        )

        assert sum(r.amount_cents for r in txn.payment_records) == 50000
        assert txn.online_cents == 30000

    def test_dues_entry_requires_details(self, db_session, staff, make_product):
        product = make_product(price_cents=50000)

        with pytest.raises(ValidationError):
            sales_service.record_sale(
                {
                    "product_id": product.id,
                    "payment_methods": [
                        {"method": "CASH", "amount_cents": 20000},
                        {"method": "DUES", "amount_cents": 30000},
                    ],
                },
                staff_id=staff.id,
            )

    @pytest.mark.parametrize("entries", [
        [],
        [{"method": "CARD", "amount_cents": 50000}],
        [{"method": "CASH"}],
        [{"method": "CASH", "amount_cents": 0}, {"method": "ONLINE", "amount_cents": 50000}],
    ])
    def test_malformed_entries_rejected(self, db_session, staff, make_product, entries):
        product = make_product(price_cents=50000)

        with pytest.raises(ValidationError):
            sales_service.record_sale(
                {"product_id": product.id, "payment_methods": entries},
                staff_id=staff.id,
            )


# =============================================================================
# HISTORY AND EXPENSES
# =============================================================================


class TestExpensesAndHistory:

    def test_record_expense(self, db_session, staff):
        txn = sales_service.record_expense({"amount_cents": 5000, "description": "Tea"}, staff_id=staff.id)

        assert txn.type == "EXPENSE"
        assert txn.payment_status == "PAID"
        assert txn.product_snapshot() is None
        assert ledger_service.find_violations(txn) == []

    @pytest.mark.parametrize("payload", [{"amount_cents": 0, "description": "x"}, {"amount_cents": 500}])
    def test_invalid_expense(self, db_session, staff, payload):
        with pytest.raises(ValidationError):
            sales_service.record_expense(payload, staff_id=staff.id)

    def test_snapshot_survives_product_deletion(self, db_session, staff, make_product):
        product = make_product(name="Denim Jacket")
        txn = sales_service.record_sale({"product_id": product.id}, staff_id=staff.id)

        products_service.delete_product(product.id)

        assert db_session.get(Product, product.id) is None
        history = ledger_service.list_transactions()
        assert history["pagination"]["total"] == 1
        entry = history["transactions"][0]
        assert entry["id"] == txn.id
        assert entry["product_snapshot"]["name"] == "Denim Jacket"

    def test_history_type_filter_and_order(self, db_session, staff, make_product):
        sale = sales_service.record_sale({"product_id": make_product().id}, staff_id=staff.id)
        expense = sales_service.record_expense({"amount_cents": 700, "description": "Cleaning"}, staff_id=staff.id)

        all_rows = ledger_service.list_transactions()["transactions"]
        assert [row["id"] for row in all_rows] == [expense.id, sale.id]

        sales_only = ledger_service.list_transactions(txn_type="sale")["transactions"]
        assert [row["id"] for row in sales_only] == [sale.id]


# =============================================================================
# POST-COMMIT CONSISTENCY
# =============================================================================


class TestPostCommitConsistency:

    def test_unflipped_product_raises_consistency_error(self, db_session, staff, make_product, monkeypatch):
        monkeypatch.setattr(sales_service, "mark_sold", lambda product_id: None)
        product = make_product()

        with pytest.raises(ConsistencyError) as exc:
            sales_service.record_sale({"product_id": product.id}, staff_id=staff.id)

        assert f"product {product.id} sold but still available" in exc.value.details["problems"]
        # the ledger row is committed and left for reconciliation
        assert _count(db_session, Transaction) == 1
        assert ledger_service.audit_ledger()[0]["transaction_id"] == exc.value.details["transaction_id"]
