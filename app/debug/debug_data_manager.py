#!/usr/bin/env python3
"""
Debug Data Manager
Inserts a small material and product catalog for local development

Handles:
- Loading app/debug/data/catalog.json
- Skipping insertion when the catalog is already present
- Fail-fast error handling
"""

from pathlib import Path
import json
from app import db
from app.utils.logger import get_logger

logger = get_logger("ops_console.debug_data_manager")

DEBUG_DATA_FILE = Path(__file__).parent / 'data' / 'catalog.json'


def insert_debug_data(enabled=True, actor='System'):
    """
    Insert debug materials and products

    Args:
        enabled (bool): Whether to insert debug data (default: True)
        actor (str): Name recorded in created_by

    Returns:
        dict: Summary of inserted rows

    Raises:
        Exception: If any debug data insertion fails (fail-fast)
    """
    from app.data.inventory.material import Material
    from app.data.products.product import Product, ProductMaterial

    if not enabled:
        logger.info("Debug data insertion is disabled")
        return {}

    with open(DEBUG_DATA_FILE, 'r', encoding='utf-8') as f:
        debug_data = json.load(f)

    if Material.query.first() is not None:
        logger.info("Debug data already present, skipping")
        return {'status': 'skipped', 'reason': 'data_present'}

    try:
        materials = {}
        for material_data in debug_data.get('materials', []):
            material = Material.create_from_dict(material_data, actor=actor, commit=False)
            materials[material.name] = material

        for product_data in debug_data.get('products', []):
            product = Product.create_from_dict(product_data, actor=actor, commit=False)
            for line in product_data.get('materials', []):
                product.materials.append(ProductMaterial(
                    material_id=materials[line['material']].id,
                    quantity_per_unit=line['quantity_per_unit'],
                    created_by=actor,
                ))

        db.session.commit()
    except Exception as e:
        db.session.rollback()
        logger.error(f"Failed to insert debug data: {e}")
        raise

    summary = {'materials': len(materials), 'products': len(debug_data.get('products', []))}
    logger.info(f"Inserted debug data: {summary}")
    return summary
