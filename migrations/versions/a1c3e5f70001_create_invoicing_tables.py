"""create_invoicing_tables

Revision ID: a1c3e5f70001
Revises:
Create Date: 2026-10-17 09:12:41.503118

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "a1c3e5f70001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # =========================
    # user
    # =========================
    op.create_table(
        "user",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("email", sa.String(length=120), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("role", sa.String(length=20), nullable=False, server_default="free"),
        sa.Column("subscription_status", sa.String(length=20), nullable=False, server_default="inactive"),
        sa.Column("invoice_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("monthly_invoice_limit", sa.Integer(), nullable=False, server_default="5"),
        sa.Column("last_invoice_reset", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_user_email", "user", ["email"], unique=True)

    # =========================
    # client
    # email unique per owning user
    # =========================
    op.create_table(
        "client",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("email", sa.String(length=120), nullable=False),
        sa.Column("phone", sa.String(length=20), nullable=True),
        sa.Column("company", sa.String(length=200), nullable=True),
        sa.Column("street", sa.String(length=200), nullable=True),
        sa.Column("city", sa.String(length=100), nullable=True),
        sa.Column("state", sa.String(length=100), nullable=True),
        sa.Column("zip_code", sa.String(length=20), nullable=True),
        sa.Column("country", sa.String(length=100), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=8), nullable=False, server_default="active"),
        sa.Column("total_invoiced", sa.Float(), nullable=False, server_default="0"),
        sa.Column("total_paid", sa.Float(), nullable=False, server_default="0"),
        sa.Column("invoice_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_invoice_date", sa.DateTime(), nullable=True),
        sa.Column("last_payment_date", sa.DateTime(), nullable=True),
        sa.Column("preferred_payment_terms", sa.String(length=20), nullable=False, server_default="Net 30"),
        sa.Column("custom_payment_terms", sa.String(length=200), nullable=True),
        sa.Column("tax_id", sa.String(length=50), nullable=True),
        sa.Column("tax_exempt", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(["user_id"], ["user.id"], name="fk_client_user", ondelete="CASCADE"),
        sa.UniqueConstraint("user_id", "email", name="uq_client_user_email"),
        sa.CheckConstraint("status IN ('active','inactive')", name="ck_client_status"),
    )
    op.create_index("ix_client_user_id", "client", ["user_id"])
    op.create_index("ix_client_user_status", "client", ["user_id", "status"])

    # =========================
    # invoice
    # invoice_number UNIQUE: allocation collisions surface as IntegrityError
    # =========================
    op.create_table(
        "invoice",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("invoice_number", sa.String(length=20), nullable=False),
        sa.Column("client_name", sa.String(length=200), nullable=False),
        sa.Column("client_email", sa.String(length=120), nullable=False),
        sa.Column("client_address", sa.JSON(), nullable=True),
        sa.Column("subtotal", sa.Float(), nullable=False, server_default="0"),
        sa.Column("tax_rate", sa.Float(), nullable=False, server_default="0"),
        sa.Column("tax_amount", sa.Float(), nullable=False, server_default="0"),
        sa.Column("total", sa.Float(), nullable=False, server_default="0"),
        sa.Column("currency", sa.String(length=3), nullable=False, server_default="USD"),
        sa.Column("status", sa.String(length=9), nullable=False, server_default="draft"),
        sa.Column("issue_date", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("due_date", sa.DateTime(), nullable=False),
        sa.Column("sent_at", sa.DateTime(), nullable=True),
        sa.Column("viewed_at", sa.DateTime(), nullable=True),
        sa.Column("paid_at", sa.DateTime(), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("payment_terms", sa.String(length=500), nullable=True),
        sa.Column("reminders_sent", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_reminder_sent", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(["user_id"], ["user.id"], name="fk_invoice_user", ondelete="CASCADE"),
        sa.UniqueConstraint("invoice_number", name="uq_invoice_invoice_number"),
        sa.CheckConstraint(
            "status IN ('draft','sent','viewed','paid','overdue','cancelled')",
            name="ck_invoice_status",
        ),
    )
    op.create_index("ix_invoice_user_id", "invoice", ["user_id"])
    op.create_index("ix_invoice_client_email", "invoice", ["client_email"])
    op.create_index("ix_invoice_user_status", "invoice", ["user_id", "status"])
    op.create_index("ix_invoice_user_created", "invoice", ["user_id", "created_at"])
    op.create_index("ix_invoice_due_status", "invoice", ["due_date", "status"])

    # =========================
    # invoice_item
    # =========================
    op.create_table(
        "invoice_item",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("invoice_id", sa.Integer(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("description", sa.String(length=500), nullable=False),
        sa.Column("quantity", sa.Float(), nullable=False),
        sa.Column("unit_price", sa.Float(), nullable=False),
        sa.Column("total", sa.Float(), nullable=False, server_default="0"),
        sa.ForeignKeyConstraint(["invoice_id"], ["invoice.id"], name="fk_invoice_item_invoice", ondelete="CASCADE"),
    )
    op.create_index("ix_invoice_item_invoice_id", "invoice_item", ["invoice_id"])


def downgrade():
    op.drop_index("ix_invoice_item_invoice_id", table_name="invoice_item")
    op.drop_table("invoice_item")

    for name in (
        "ix_invoice_due_status",
        "ix_invoice_user_created",
        "ix_invoice_user_status",
        "ix_invoice_client_email",
        "ix_invoice_user_id",
    ):
        op.drop_index(name, table_name="invoice")
    op.drop_table("invoice")

    op.drop_index("ix_client_user_status", table_name="client")
    op.drop_index("ix_client_user_id", table_name="client")
    op.drop_table("client")

    op.drop_index("ix_user_email", table_name="user")
    op.drop_table("user")
