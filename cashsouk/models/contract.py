import uuid

from sqlalchemy import CheckConstraint, Column, DateTime, Integer, String, func
from sqlalchemy.dialects.postgresql import JSONB, UUID

from cashsouk.db.base import Base


FINANCING_RECORD_STATUSES = ("DRAFT", "SUBMITTED", "APPROVED", "REJECTED")


class Contract(Base):
    __tablename__ = "contracts"
    __table_args__ = (
        CheckConstraint(
            "status IN ('DRAFT', 'SUBMITTED', 'APPROVED', 'REJECTED')",
            name="ck_contracts_status",
        ),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    issuer_organization_id = Column(String(64), nullable=False, index=True)
    status = Column(String(20), nullable=False, default="DRAFT", index=True)
    contract_details = Column(JSONB, nullable=True)
    customer_details = Column(JSONB, nullable=True)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    __mapper_args__ = {"version_id_col": version}
