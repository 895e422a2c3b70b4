import uuid

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import UUID

from cashsouk.db.base import Base


class ApplicationReview(Base):
    """Review status of one section (FINANCIAL, JUSTIFICATION, DOCUMENTS) of an application."""

    __tablename__ = "application_reviews"
    __table_args__ = (
        UniqueConstraint("application_id", "section", name="uq_application_reviews_section"),
        CheckConstraint(
            "section IN ('FINANCIAL', 'JUSTIFICATION', 'DOCUMENTS')",
            name="ck_application_reviews_section",
        ),
        CheckConstraint(
            "status IN ('PENDING', 'APPROVED', 'REJECTED', 'AMENDMENT_REQUESTED')",
            name="ck_application_reviews_status",
        ),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    application_id = Column(
        UUID(as_uuid=True),
        ForeignKey("applications.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    section = Column(String(30), nullable=False)
    status = Column(String(30), nullable=False, default="PENDING")
    reviewer_user_id = Column(String(255), nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )


class ApplicationReviewItem(Base):
    """Review status of a single invoice or supporting document."""

    __tablename__ = "application_review_items"
    __table_args__ = (
        UniqueConstraint(
            "application_id", "item_type", "item_id", name="uq_application_review_items_item"
        ),
        CheckConstraint(
            "item_type IN ('INVOICE', 'DOCUMENT')",
            name="ck_application_review_items_type",
        ),
        CheckConstraint(
            "status IN ('PENDING', 'APPROVED', 'REJECTED', 'AMENDMENT_REQUESTED')",
            name="ck_application_review_items_status",
        ),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    application_id = Column(
        UUID(as_uuid=True),
        ForeignKey("applications.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    item_type = Column(String(20), nullable=False)
    item_id = Column(String(512), nullable=False)
    status = Column(String(30), nullable=False, default="PENDING")
    reviewer_user_id = Column(String(255), nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )


class ApplicationReviewNote(Base):
    """Issuer-facing amendment instructions. Append-only."""

    __tablename__ = "application_review_notes"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    application_id = Column(
        UUID(as_uuid=True),
        ForeignKey("applications.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    scope = Column(String(20), nullable=False)
    scope_key = Column(String(512), nullable=False)
    action_type = Column(String(40), nullable=False)
    note = Column(Text, nullable=False)
    author_user_id = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class ApplicationReviewEvent(Base):
    """Activity feed of every review transition. Append-only."""

    __tablename__ = "application_review_events"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    application_id = Column(
        UUID(as_uuid=True),
        ForeignKey("applications.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    event_type = Column(String(50), nullable=False)
    scope = Column(String(20), nullable=False)
    scope_key = Column(String(512), nullable=False)
    old_status = Column(String(30), nullable=True)
    new_status = Column(String(30), nullable=False)
    reviewer_user_id = Column(String(255), nullable=True)
    note = Column(Text, nullable=True)
    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), index=True
    )
