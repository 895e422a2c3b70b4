import uuid

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, String, func
from sqlalchemy.dialects.postgresql import JSONB, UUID

from cashsouk.db.base import Base


APPLICATION_STATUSES = (
    "DRAFT",
    "SUBMITTED",
    "UNDER_REVIEW",
    "RESUBMITTED",
    "AMENDMENT_REQUESTED",
    "APPROVED",
    "REJECTED",
    "ARCHIVED",
)

# Step keys that persist into a column of the same name on the application.
STEP_DATA_COLUMNS = (
    "financing_type",
    "financing_structure",
    "company_details",
    "business_details",
    "supporting_documents",
    "declarations",
)


class Application(Base):
    __tablename__ = "applications"
    __allow_unmapped__ = True
    __table_args__ = (
        CheckConstraint("last_completed_step >= 1", name="ck_applications_last_step_positive"),
        CheckConstraint("version >= 1", name="ck_applications_version_positive"),
        CheckConstraint(
            "status IN ('DRAFT', 'SUBMITTED', 'UNDER_REVIEW', 'RESUBMITTED', "
            "'AMENDMENT_REQUESTED', 'APPROVED', 'REJECTED', 'ARCHIVED')",
            name="ck_applications_status",
        ),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    issuer_organization_id = Column(String(64), nullable=False, index=True)
    product_id = Column(UUID(as_uuid=True), nullable=True, index=True)
    product_version = Column(Integer, nullable=False)
    status = Column(String(30), nullable=False, default="DRAFT", index=True)
    last_completed_step = Column(Integer, nullable=False, default=1)
    financing_type = Column(JSONB, nullable=True)
    financing_structure = Column(JSONB, nullable=True)
    company_details = Column(JSONB, nullable=True)
    business_details = Column(JSONB, nullable=True)
    supporting_documents = Column(JSONB, nullable=True)
    declarations = Column(JSONB, nullable=True)
    contract_id = Column(
        UUID(as_uuid=True),
        ForeignKey("contracts.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    created_by_user_id = Column(String(255), nullable=True)
    version = Column(Integer, nullable=False, default=1)
    submitted_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    __mapper_args__ = {"version_id_col": version}
