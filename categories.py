from enum import Enum
from typing import Optional, Union

from rapidfuzz.distance import Levenshtein


class ExpenseCategory(str, Enum):
    grocery = "grocery"
    dining = "dining"
    shopping = "shopping"
    fuel = "fuel"
    entertainment = "entertainment"
    travel = "travel"
    healthcare = "healthcare"
    utilities = "utilities"
    education = "education"
    insurance = "insurance"
    investment = "investment"
    other = "other"


class RewardType(str, Enum):
    cashback = "cashback"
    reward_points = "reward_points"
    miles = "miles"
    fuel_points = "fuel_points"
    none = "none"


FALLBACK_COLOR = "#6b7280"

CATEGORY_COLORS: dict[ExpenseCategory, str] = {
    ExpenseCategory.grocery: "#22c55e",
    ExpenseCategory.dining: "#f97316",
    ExpenseCategory.shopping: "#ec4899",
    ExpenseCategory.fuel: "#eab308",
    ExpenseCategory.entertainment: "#8b5cf6",
    ExpenseCategory.travel: "#06b6d4",
    ExpenseCategory.healthcare: "#ef4444",
    ExpenseCategory.utilities: "#64748b",
    ExpenseCategory.education: "#3b82f6",
    ExpenseCategory.insurance: "#10b981",
    ExpenseCategory.investment: "#f59e0b",
    ExpenseCategory.other: FALLBACK_COLOR,
}

REWARD_TYPE_LABELS: dict[RewardType, str] = {
    RewardType.cashback: "Cashback",
    RewardType.reward_points: "Reward Points",
    RewardType.miles: "Air Miles",
    RewardType.fuel_points: "Fuel Points",
    RewardType.none: "No Rewards",
}

BANKS = (
    "HDFC Bank",
    "ICICI Bank",
    "State Bank of India",
    "Axis Bank",
    "Kotak Mahindra Bank",
    "IndusInd Bank",
    "Yes Bank",
    "Punjab National Bank",
    "Bank of Baroda",
    "Canara Bank",
    "Union Bank of India",
    "IDFC First Bank",
    "RBL Bank",
    "Federal Bank",
    "South Indian Bank",
    "HSBC India",
    "Standard Chartered",
    "Citibank India",
    "American Express",
    "Other",
)

CARD_COLORS = (
    "#ef4444",
    "#dc2626",
    "#b91c1c",
    "#991b1b",
    "#f97316",
    "#ea580c",
    "#c2410c",
    "#9a3412",
    "#eab308",
    "#ca8a04",
)

DEFAULT_CARD_COLOR = CARD_COLORS[0]


def category_color(category: Union[ExpenseCategory, str, None]) -> str:
    if category is None:
        return FALLBACK_COLOR
    try:
        return CATEGORY_COLORS[ExpenseCategory(category)]
    except ValueError:
        return FALLBACK_COLOR


def parse_category(raw: Optional[str]) -> ExpenseCategory:
    """Map free-form category text onto the catalog.

    Exact (case-insensitive) names win. Otherwise a single catalog entry within
    one edit is accepted, so "dinning" still lands on dining. Anything else,
    including ties, falls back to ``other``.
    """
    value = (raw or "").strip().lower()
    if not value:
        return ExpenseCategory.other
    try:
        return ExpenseCategory(value)
    except ValueError:
        pass

    best_distance: Optional[int] = None
    best: list[ExpenseCategory] = []
    for category in ExpenseCategory:
        dist = int(Levenshtein.distance(value, category.value))
        if best_distance is None or dist < best_distance:
            best_distance = dist
            best = [category]
        elif dist == best_distance:
            best.append(category)

    if best_distance is not None and best_distance <= 1 and len(best) == 1:
        return best[0]
    return ExpenseCategory.other


def parse_reward_type(raw: Optional[str]) -> RewardType:
    value = (raw or "").strip().lower()
    try:
        return RewardType(value)
    except ValueError:
        return RewardType.none


def reward_type_label(reward_type: Union[RewardType, str]) -> str:
    try:
        return REWARD_TYPE_LABELS[RewardType(reward_type)]
    except ValueError:
        return str(reward_type)
