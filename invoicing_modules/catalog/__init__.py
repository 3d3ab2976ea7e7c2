"""
Catalog Module.

Reusable billable services that pre-fill document line items.
"""

from invoicing_modules.catalog.models import CatalogService
from invoicing_modules.catalog.service import ServiceCatalog

__all__ = [
    "CatalogService",
    "ServiceCatalog",
]
