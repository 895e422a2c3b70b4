"""Create products, applications, contracts, invoices, review and audit tables"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "20261001_financing_applications"
down_revision = None
branch_labels = None
depends_on = None

RECORD_STATUS_CHECK = "status IN ('DRAFT', 'SUBMITTED', 'APPROVED', 'REJECTED')"
REVIEW_STATUS_CHECK = "status IN ('PENDING', 'APPROVED', 'REJECTED', 'AMENDMENT_REQUESTED')"


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "products",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("workflow", postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("step_key_map", postgresql.JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("deleted_at", sa.TIMESTAMP(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("version >= 1", name="ck_products_version_positive"),
    )

    op.create_table(
        "contracts",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("issuer_organization_id", sa.String(length=64), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="DRAFT"),
        sa.Column("contract_details", postgresql.JSONB(), nullable=True),
        sa.Column("customer_details", postgresql.JSONB(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        *_timestamps(),
        sa.CheckConstraint(RECORD_STATUS_CHECK, name="ck_contracts_status"),
    )
    op.create_index("ix_contracts_issuer_organization_id", "contracts", ["issuer_organization_id"])
    op.create_index("ix_contracts_status", "contracts", ["status"])

    op.create_table(
        "applications",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("issuer_organization_id", sa.String(length=64), nullable=False),
        sa.Column("product_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("product_version", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=30), nullable=False, server_default="DRAFT"),
        sa.Column("last_completed_step", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("financing_type", postgresql.JSONB(), nullable=True),
        sa.Column("financing_structure", postgresql.JSONB(), nullable=True),
        sa.Column("company_details", postgresql.JSONB(), nullable=True),
        sa.Column("business_details", postgresql.JSONB(), nullable=True),
        sa.Column("supporting_documents", postgresql.JSONB(), nullable=True),
        sa.Column("declarations", postgresql.JSONB(), nullable=True),
        sa.Column(
            "contract_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("contracts.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("created_by_user_id", sa.String(length=255), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("submitted_at", sa.TIMESTAMP(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("last_completed_step >= 1", name="ck_applications_last_step_positive"),
        sa.CheckConstraint("version >= 1", name="ck_applications_version_positive"),
        sa.CheckConstraint(
            "status IN ('DRAFT', 'SUBMITTED', 'UNDER_REVIEW', 'RESUBMITTED', "
            "'AMENDMENT_REQUESTED', 'APPROVED', 'REJECTED', 'ARCHIVED')",
            name="ck_applications_status",
        ),
    )
    op.create_index("ix_applications_issuer_organization_id", "applications", ["issuer_organization_id"])
    op.create_index("ix_applications_product_id", "applications", ["product_id"])
    op.create_index("ix_applications_status", "applications", ["status"])
    op.create_index("ix_applications_contract_id", "applications", ["contract_id"])

    op.create_table(
        "invoices",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "application_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("applications.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "contract_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("contracts.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="DRAFT"),
        sa.Column("details", postgresql.JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        *_timestamps(),
        sa.CheckConstraint(RECORD_STATUS_CHECK, name="ck_invoices_status"),
    )
    op.create_index("ix_invoices_application_id", "invoices", ["application_id"])
    op.create_index("ix_invoices_contract_id", "invoices", ["contract_id"])

    op.create_table(
        "application_reviews",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "application_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("applications.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("section", sa.String(length=30), nullable=False),
        sa.Column("status", sa.String(length=30), nullable=False, server_default="PENDING"),
        sa.Column("reviewer_user_id", sa.String(length=255), nullable=True),
        sa.Column("reviewed_at", sa.TIMESTAMP(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("application_id", "section", name="uq_application_reviews_section"),
        sa.CheckConstraint(
            "section IN ('FINANCIAL', 'JUSTIFICATION', 'DOCUMENTS')",
            name="ck_application_reviews_section",
        ),
        sa.CheckConstraint(REVIEW_STATUS_CHECK, name="ck_application_reviews_status"),
    )
    op.create_index("ix_application_reviews_application_id", "application_reviews", ["application_id"])

    op.create_table(
        "application_review_items",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "application_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("applications.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("item_type", sa.String(length=20), nullable=False),
        sa.Column("item_id", sa.String(length=512), nullable=False),
        sa.Column("status", sa.String(length=30), nullable=False, server_default="PENDING"),
        sa.Column("reviewer_user_id", sa.String(length=255), nullable=True),
        sa.Column("reviewed_at", sa.TIMESTAMP(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("application_id", "item_type", "item_id", name="uq_application_review_items_item"),
        sa.CheckConstraint("item_type IN ('INVOICE', 'DOCUMENT')", name="ck_application_review_items_type"),
        sa.CheckConstraint(REVIEW_STATUS_CHECK, name="ck_application_review_items_status"),
    )
    op.create_index("ix_application_review_items_application_id", "application_review_items", ["application_id"])

    op.create_table(
        "application_review_notes",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "application_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("applications.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("scope", sa.String(length=20), nullable=False),
        sa.Column("scope_key", sa.String(length=512), nullable=False),
        sa.Column("action_type", sa.String(length=40), nullable=False),
        sa.Column("note", sa.Text(), nullable=False),
        sa.Column("author_user_id", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_application_review_notes_application_id", "application_review_notes", ["application_id"])

    op.create_table(
        "application_review_events",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "application_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("applications.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("event_type", sa.String(length=50), nullable=False),
        sa.Column("scope", sa.String(length=20), nullable=False),
        sa.Column("scope_key", sa.String(length=512), nullable=False),
        sa.Column("old_status", sa.String(length=30), nullable=True),
        sa.Column("new_status", sa.String(length=30), nullable=False),
        sa.Column("reviewer_user_id", sa.String(length=255), nullable=True),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_application_review_events_application_id", "application_review_events", ["application_id"])
    op.create_index("ix_application_review_events_created_at", "application_review_events", ["created_at"])

    op.create_table(
        "audit_logs",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("org_id", sa.String(), nullable=True),
        sa.Column("actor_id", sa.String(length=255), nullable=True),
        sa.Column("action", sa.String(length=255), nullable=False),
        sa.Column("resource_type", sa.String(length=255), nullable=False),
        sa.Column("resource_id", sa.String(length=255), nullable=False),
        sa.Column("old_value", sa.JSON(), nullable=True),
        sa.Column("new_value", sa.JSON(), nullable=True),
        sa.Column("changes", sa.JSON(), nullable=True),
        sa.Column("summary", sa.Text(), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_audit_logs_org_id", "audit_logs", ["org_id"])
    op.create_index("ix_audit_logs_resource_id", "audit_logs", ["resource_id"])


def downgrade() -> None:
    op.drop_table("audit_logs")
    op.drop_table("application_review_events")
    op.drop_table("application_review_notes")
    op.drop_table("application_review_items")
    op.drop_table("application_reviews")
    op.drop_table("invoices")
    op.drop_table("applications")
    op.drop_table("contracts")
    op.drop_table("products")
