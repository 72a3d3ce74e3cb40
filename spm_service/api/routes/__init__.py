"""API routes module."""

from spm_service.api.routes.health import router as health_router
from spm_service.api.routes.products import router as products_router
from spm_service.api.routes.taxonomy import router as taxonomy_router

__all__ = ["health_router", "products_router", "taxonomy_router"]
