"""Initial schema: users, sessions, products, transactions, payment records

Revision ID: 20261019_initial
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("role", sa.String(16), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("staff_code", sa.String(64), nullable=True),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("(CURRENT_TIMESTAMP)")),
        sa.Column("last_login_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_users"),
        sa.UniqueConstraint("email", name="uq_users_email"),
        sa.UniqueConstraint("staff_code", name="uq_users_staff_code"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("users", schema=None) as batch_op:
        batch_op.create_index("ix_users_role", ["role"], unique=False)

    op.create_table(
        "session_tokens",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("token_hash", sa.String(255), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("last_used_at", sa.DateTime(), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("is_revoked", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("revoked_at", sa.DateTime(), nullable=True),
        sa.Column("revoked_reason", sa.String(255), nullable=True),
        sa.Column("user_agent", sa.String(255), nullable=True),
        sa.Column("ip_address", sa.String(64), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], name="fk_session_tokens_user_id_users"),
        sa.PrimaryKeyConstraint("id", name="pk_session_tokens"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("session_tokens", schema=None) as batch_op:
        batch_op.create_index("ix_session_tokens_user_id", ["user_id"], unique=False)
        batch_op.create_index("ix_session_tokens_token_hash", ["token_hash"], unique=True)
        batch_op.create_index("ix_session_tokens_expires_at", ["expires_at"], unique=False)
        batch_op.create_index("ix_session_tokens_is_revoked", ["is_revoked"], unique=False)
        batch_op.create_index("ix_session_tokens_user_active", ["user_id", "is_revoked"], unique=False)

    op.create_table(
        "products",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("price_cents", sa.Integer(), nullable=False),
        sa.Column("category", sa.String(16), nullable=False),
        sa.Column("sub_category", sa.String(64), nullable=False),
        sa.Column("images", sa.JSON(), nullable=False),
        sa.Column("stock_status", sa.String(16), nullable=False, server_default="IN_STOCK"),
        sa.Column("is_online", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("is_new_arrival", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("is_best_seller", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("(CURRENT_TIMESTAMP)")),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.text("(CURRENT_TIMESTAMP)")),
        sa.CheckConstraint("price_cents >= 0", name="ck_products_price_non_negative"),
        sa.PrimaryKeyConstraint("id", name="pk_products"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("products", schema=None) as batch_op:
        batch_op.create_index("ix_products_category", ["category"], unique=False)
        batch_op.create_index("ix_products_sub_category", ["sub_category"], unique=False)
        batch_op.create_index("ix_products_online_category", ["is_online", "category"], unique=False)
        batch_op.create_index("ix_products_name", ["name"], unique=False)

    op.create_table(
        "transactions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("type", sa.String(16), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("amount_paid_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("due_amount_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("payment_status", sa.String(8), nullable=False, server_default="PAID"),
        sa.Column("cash_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("online_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("dues_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("staff_id", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=True),
        sa.Column("snapshot_name", sa.String(255), nullable=True),
        sa.Column("snapshot_category", sa.String(16), nullable=True),
        sa.Column("snapshot_sub_category", sa.String(64), nullable=True),
        sa.Column("snapshot_image_url", sa.String(1024), nullable=True),
        sa.Column("customer_name", sa.String(128), nullable=True),
        sa.Column("customer_phone", sa.String(10), nullable=True),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("(CURRENT_TIMESTAMP)")),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.text("(CURRENT_TIMESTAMP)")),
        sa.CheckConstraint("amount_paid_cents >= 0", name="ck_transactions_amount_paid_non_negative"),
        sa.CheckConstraint("due_amount_cents >= 0", name="ck_transactions_due_amount_non_negative"),
        sa.CheckConstraint(
            "amount_paid_cents + due_amount_cents = amount_cents",
            name="ck_transactions_paid_plus_due_equals_amount",
        ),
        sa.ForeignKeyConstraint(["staff_id"], ["users.id"], name="fk_transactions_staff_id_users"),
        sa.PrimaryKeyConstraint("id", name="pk_transactions"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("transactions", schema=None) as batch_op:
        batch_op.create_index("ix_transactions_product_id", ["product_id"], unique=False)
        batch_op.create_index("ix_transactions_due_date", ["due_date"], unique=False)
        batch_op.create_index("ix_transactions_status_due", ["payment_status", "due_amount_cents"], unique=False)
        batch_op.create_index("ix_transactions_created", ["created_at"], unique=False)
        batch_op.create_index("ix_transactions_staff_created", ["staff_id", "created_at"], unique=False)
        batch_op.create_index("ix_transactions_type_created", ["type", "created_at"], unique=False)

    op.create_table(
        "payment_records",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("transaction_id", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=True),
        sa.Column("method", sa.String(16), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="PAID"),
        sa.Column("created_by_user_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("(CURRENT_TIMESTAMP)")),
        sa.CheckConstraint("amount_cents >= 0", name="ck_payment_records_amount_non_negative"),
        sa.ForeignKeyConstraint(
            ["transaction_id"], ["transactions.id"], name="fk_payment_records_transaction_id_transactions"
        ),
        sa.ForeignKeyConstraint(
            ["created_by_user_id"], ["users.id"], name="fk_payment_records_created_by_user_id_users"
        ),
        sa.PrimaryKeyConstraint("id", name="pk_payment_records"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("payment_records", schema=None) as batch_op:
        batch_op.create_index("ix_payment_records_transaction_id", ["transaction_id"], unique=False)
        batch_op.create_index("ix_payment_records_method", ["method"], unique=False)
        batch_op.create_index("ix_payment_records_created", ["created_at"], unique=False)
        batch_op.create_index("ix_payment_records_txn_status", ["transaction_id", "status"], unique=False)


def downgrade():
    op.drop_table("payment_records")
    op.drop_table("transactions")
    op.drop_table("products")
    op.drop_table("session_tokens")
    op.drop_table("users")
