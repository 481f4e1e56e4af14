"""
Category store helpers.

Category names are unique case-insensitively. Transactions reference
categories by name, so a rename rewrites every transaction carrying the old
name.
"""

import logging
from typing import Any, Dict, List, Optional

from fintrack.database.db_service import DatabaseService

logger = logging.getLogger(__name__)

UNCATEGORIZED = "Uncategorized"

DEFAULT_CATEGORIES = [
    {"name": "Groceries", "icon": "shopping-cart"},
    {"name": "Dining", "icon": "utensils"},
    {"name": "Transportation", "icon": "car"},
    {"name": "Utilities", "icon": "bolt"},
    {"name": "Rent", "icon": "home"},
    {"name": "Entertainment", "icon": "film"},
    {"name": "Shopping", "icon": "shopping-bag"},
    {"name": "Healthcare", "icon": "heart"},
    {"name": "Travel", "icon": "plane"},
    {"name": "Income", "icon": "dollar-sign"},
    {"name": "Transfer", "icon": "exchange"},
    {"name": UNCATEGORIZED, "icon": "question"},
]


class CategoryExistsError(ValueError):
    """A category with the same name (ignoring case) already exists."""


def normalize_name(name: Optional[str]) -> str:
    name = (name or "").strip()
    if not name:
        raise ValueError("Category name cannot be empty")
    return name


def find_category_by_name(db: DatabaseService, name: str) -> Optional[Dict[str, Any]]:
    """Case-insensitive lookup."""
    return db.find_one("categories", {"name_lower": name.strip().lower()})


def create_category(db: DatabaseService, name: str, icon: Optional[str] = None) -> Dict[str, Any]:
    name = normalize_name(name)
    if find_category_by_name(db, name):
        raise CategoryExistsError(f'Category "{name}" already exists')

    category = db.insert("categories", {
        "name": name,
        "name_lower": name.lower(),
        "icon": icon,
    })
    logger.info(f"Created category '{name}'")
    return category


def update_category(
    db: DatabaseService,
    category: Dict[str, Any],
    name: Optional[str] = None,
    icon: Optional[str] = None,
) -> int:
    """
    Update a category and, when the name changes, every transaction using it.

    Returns:
        Number of transactions rewritten to the new name
    """
    update_data = {}
    rewritten = 0

    if icon is not None:
        update_data["icon"] = icon

    if name is not None:
        name = normalize_name(name)
        existing = find_category_by_name(db, name)
        if existing and existing["id"] != category["id"]:
            raise CategoryExistsError(f'Category "{name}" already exists')
        update_data["name"] = name
        update_data["name_lower"] = name.lower()

    if update_data:
        db.update("categories", category["id"], update_data)

    if name is not None and name != category["name"]:
        affected = db.find("transactions", {"category": category["name"]}, order_by=[])
        rewritten = db.bulk_update("transactions", [t["id"] for t in affected], {"category": name})
        logger.info(f"Renamed category '{category['name']}' to '{name}' ({rewritten} transactions)")

    return rewritten


def seed_default_categories(db: DatabaseService) -> List[Dict[str, Any]]:
    """Create any missing default categories. Returns the ones created."""
    created = []
    for default in DEFAULT_CATEGORIES:
        if find_category_by_name(db, default["name"]):
            continue
        created.append(create_category(db, default["name"], default["icon"]))
    return created
