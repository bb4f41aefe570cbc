"""
PATH: products/models/__init__.py

Products models export surface.
"""

from .product import Product, ProductOption

__all__ = [
    "Product",
    "ProductOption",
]
