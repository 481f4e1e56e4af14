from datetime import date

import pytest

from fintrack.services.categories import (
    DEFAULT_CATEGORIES,
    CategoryExistsError,
    create_category,
    find_category_by_name,
    seed_default_categories,
    update_category,
)


def test_create_trims_name_and_stores_lowercase_key(db):
    category = create_category(db, "  Groceries ", icon="cart")

    assert category["name"] == "Groceries"
    assert category["name_lower"] == "groceries"
    assert category["icon"] == "cart"


@pytest.mark.parametrize("name", ["", "   ", None])
def test_create_rejects_empty_name(db, name):
    with pytest.raises(ValueError):
        create_category(db, name)


def test_create_rejects_case_insensitive_duplicate(db):
    create_category(db, "Dining")

    with pytest.raises(CategoryExistsError):
        create_category(db, "DINING")


def test_find_is_case_insensitive(db):
    created = create_category(db, "Travel")

    assert find_category_by_name(db, " travel ")["id"] == created["id"]
    assert find_category_by_name(db, "Transport") is None


def test_rename_rewrites_transactions(db, session, account):
    category = create_category(db, "Food")
    for index in range(3):
        db.insert("transactions", {
            "account_id": account["id"],
            "date": date(2024, 7, 1),
            "description": f"Meal {index}",
            "amount": -12.0,
            "category": "Food",
            "is_debit": True,
        })
    session.commit()

    rewritten = update_category(db, category, name="Groceries")
    session.commit()

    assert rewritten == 3
    assert {t["category"] for t in db.find("transactions")} == {"Groceries"}
    assert db.find_one("categories", {"id": category["id"]})["name_lower"] == "groceries"


def test_rename_to_other_existing_name_is_rejected(db):
    create_category(db, "Food")
    dining = create_category(db, "Dining")

    with pytest.raises(CategoryExistsError):
        update_category(db, dining, name="food")


def test_rename_changing_only_case_is_allowed(db, session):
    category = create_category(db, "food")
    session.commit()

    update_category(db, category, name="Food")
    session.commit()

    assert db.find_one("categories", {"id": category["id"]})["name"] == "Food"


def test_seed_defaults_is_idempotent(db, session):
    create_category(db, "groceries")

    created = seed_default_categories(db)
    session.commit()

    assert len(created) == len(DEFAULT_CATEGORIES) - 1
    assert seed_default_categories(db) == []
