from fastapi import APIRouter

from cashsouk.api.v1.routers import (
    application_reviews,
    applications,
    contracts,
    health,
    invoices,
    products,
    uploads,
)

api_router = APIRouter()
api_router.include_router(health.router)
api_router.include_router(products.router)
api_router.include_router(applications.router)
api_router.include_router(contracts.router)
api_router.include_router(invoices.router)
api_router.include_router(uploads.router)
api_router.include_router(application_reviews.router)

__all__ = ["api_router"]
