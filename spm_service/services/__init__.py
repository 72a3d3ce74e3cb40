"""Business logic services."""

from spm_service.services.category_suggestion import CategorySuggester
from spm_service.services.product_service import ProductService
from spm_service.services.taxonomy_maintenance import TaxonomyMaintenance
from spm_service.services.taxonomy_mutations import TaxonomyMutations
from spm_service.services.taxonomy_queries import TaxonomyQueries

__all__ = [
    "CategorySuggester",
    "ProductService",
    "TaxonomyMaintenance",
    "TaxonomyMutations",
    "TaxonomyQueries",
]
