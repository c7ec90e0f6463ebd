"""
Starter categories and rules for a New Zealand household.

Used to seed an empty expense store.
"""

from flatledger.models.expense import ExpenseCategory, ExpenseRule


POWER_RETAILERS = (
    "Mercury",
    "Genesis",
    "Contact Energy",
    "Electric Kiwi",
    "Flick",
    "Meridian",
    "Powershop",
)

SUPERMARKETS = (
    "Countdown",
    "New World",
    "Pak'nSave",
    "PAK'N SAVE",
    "Four Square",
)


def default_categories() -> list[ExpenseCategory]:
    return [
        ExpenseCategory(
            id="power",
            name="Power",
            icon="Zap",
            color="amber",
            track_allotments=True,
            sort_order=1,
        ),
        ExpenseCategory(
            id="groceries",
            name="Groceries",
            icon="ShoppingCart",
            color="emerald",
            sort_order=2,
        ),
    ]


def default_rules() -> list[ExpenseRule]:
    """Merchant rules for both categories plus an aggregator fallback for groceries."""
    rules = [
        ExpenseRule(
            id=f"power-{index}",
            category_id="power",
            name=f"{retailer} Power",
            priority=100 - index,
            merchant_pattern=retailer,
        )
        for index, retailer in enumerate(POWER_RETAILERS)
    ]
    rules += [
        ExpenseRule(
            id=f"groceries-{index}",
            category_id="groceries",
            name=f"{store} Groceries",
            priority=90 - index,
            merchant_pattern=store,
        )
        for index, store in enumerate(SUPERMARKETS)
    ]
    rules.append(ExpenseRule(
        id="groceries-aggregator",
        category_id="groceries",
        name="Aggregator groceries category",
        priority=50,
        aggregator_category="groceries",
    ))
    return rules
