from typing import Optional, Tuple

UNKNOWN_MERCHANT = "Unknown Merchant"
OTHER_CATEGORY = "Other"

# Closed category enumeration shared by the AI schema and the canonical draft.
CATEGORIES: Tuple[str, ...] = (
    "Groceries",
    "Dining",
    "Transportation",
    "Health",
    "Shopping",
    "Entertainment",
    "Bills",
    "Travel",
    "Education",
    OTHER_CATEGORY,
)

_PLACEHOLDER_NAMES = {"", "unknown", UNKNOWN_MERCHANT.lower()}

# Ordered: the first row whose keyword occurs in the lowered text wins.
_CATEGORY_KEYWORDS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("Groceries", ("grocer", "supermarket", "market")),
    ("Dining", ("dining", "restaurant", "food", "cafe", "coffee", "pizza", "burger", "diner", "eat")),
    ("Transportation", ("transport", "gas", "fuel", "uber", "lyft", "taxi", "parking", "transit")),
    ("Health", ("health", "pharmacy", "medical", "drug", "hospital", "clinic")),
    ("Shopping", ("shop", "retail", "store", "mall", "cloth", "fashion")),
    ("Entertainment", ("entertain", "movie", "cinema", "game", "sport", "music")),
    ("Bills", ("bill", "utility", "electric", "water", "internet", "phone")),
    ("Travel", ("travel", "hotel", "flight", "airlin", "lodg")),
    ("Education", ("educat", "school", "book", "course", "tutor")),
)


def is_unknown_merchant(name: Optional[str]) -> bool:
    """True for missing names and the 'Unknown' / 'Unknown Merchant' placeholders."""
    if name is None:
        return True
    return name.strip().lower() in _PLACEHOLDER_NAMES


def normalize_category(raw: Optional[str]) -> str:
    """Map any free-form category label onto :data:`CATEGORIES`."""
    if raw is None:
        return OTHER_CATEGORY
    stripped = raw.strip()
    for category in CATEGORIES:
        if stripped.lower() == category.lower():
            return category
    lower = stripped.lower()
    for category, keywords in _CATEGORY_KEYWORDS:
        if any(k in lower for k in keywords):
            return category
    return OTHER_CATEGORY
