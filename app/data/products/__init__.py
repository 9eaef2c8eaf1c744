"""
Product catalog models (products and their bill of materials)
"""

from app.data.products.product import Product, ProductMaterial

__all__ = [
    'Product',
    'ProductMaterial',
]
