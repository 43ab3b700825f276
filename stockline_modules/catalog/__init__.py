"""
Catalog Module.

Products, variants, suppliers, manual stock adjustments and console users.
"""

from stockline_modules.catalog.models import ProductInfo, SupplierInfo, UserInfo, VariantInfo
from stockline_modules.catalog.service import CatalogService, UserService

__all__ = [
    "CatalogService",
    "UserService",
    "ProductInfo",
    "VariantInfo",
    "SupplierInfo",
    "UserInfo",
]
