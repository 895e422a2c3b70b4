from cashsouk.models.application import Application
from cashsouk.models.application_review import (
    ApplicationReview,
    ApplicationReviewEvent,
    ApplicationReviewItem,
    ApplicationReviewNote,
)
from cashsouk.models.audit_log import AuditLog
from cashsouk.models.contract import Contract
from cashsouk.models.invoice import Invoice
from cashsouk.models.product import Product

__all__ = [
    "Application",
    "ApplicationReview",
    "ApplicationReviewEvent",
    "ApplicationReviewItem",
    "ApplicationReviewNote",
    "AuditLog",
    "Contract",
    "Invoice",
    "Product",
]
