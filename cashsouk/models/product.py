import uuid

from sqlalchemy import CheckConstraint, Column, DateTime, Integer, String, func
from sqlalchemy.dialects.postgresql import JSONB, UUID

from cashsouk.db.base import Base


class Product(Base):
    """A financing product and the ordered workflow issuers walk through.

    ``version`` increments on every edit and doubles as the optimistic
    concurrency column. ``step_key_map`` is the authored mapping of
    workflow step ids to canonical step keys for this version.
    """

    __tablename__ = "products"
    __table_args__ = (CheckConstraint("version >= 1", name="ck_products_version_positive"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    workflow = Column(JSONB, nullable=False, default=list)
    step_key_map = Column(JSONB, nullable=False, default=dict)
    version = Column(Integer, nullable=False, default=1)
    deleted_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    __mapper_args__ = {"version_id_col": version, "version_id_generator": False}
