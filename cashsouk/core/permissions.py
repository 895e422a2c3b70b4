from enum import Enum


class PermissionCode(str, Enum):
    # Issuer portal
    APPLICATION_APPLY = "application.apply"

    # Admin portal
    APPLICATION_REVIEW = "application.review"
    PRODUCT_MANAGE = "product.manage"
