"""
Transaction Classification Service

Rule tables used when importing bank statements:

Kind (based on the direction cell, "Uplata/isplata"):
- income: text mentions "uplata" (payment in) and not "isplata" (payment out)
- expense: everything else, including legend cells naming both

Category icon (based on the description):
- ordered keyword rules, first match wins, default card icon
"""
import logging
from typing import Iterable, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

INCOME = "income"
EXPENSE = "expense"

CREDIT_KEYWORD = "uplata"
DEBIT_KEYWORD = "isplata"

# (keywords, icon) - order matters, more specific rules first
ICON_RULES: Sequence[Tuple[Tuple[str, ...], str]] = (
    (("tobacco", "cigarete"), "🚬"),
    (("studenac", "konzum", "lidl"), "🛒"),
    (("fitness", "gym"), "💪"),
    (("wolt", "uber", "glovo"), "🍔"),
    (("spotify", "netflix", "rtl"), "🎵"),
    (("steam", "riot", "game"), "🎮"),
    (("petrol", "benzin", "fuel"), "⛽"),
    (("ljekarna", "pharmacy", "apteka"), "💊"),
    (("prijenos", "transfer"), "💸"),
    (("pozajmica", "loan"), "💰"),
)
DEFAULT_ICON = "💳"


def first_matching_rule(text: str, rules: Iterable[Tuple[Tuple[str, ...], str]]) -> Optional[str]:
    """Return the result of the first rule with a keyword contained in ``text`` (case-insensitive)."""
    lowered = (text or "").lower()
    for keywords, result in rules:
        if any(keyword in lowered for keyword in keywords):
            return result
    return None


class TransactionClassifier:
    """Classifies imported statement rows."""

    @staticmethod
    def classify_direction(direction: str) -> str:
        """
        Classify a statement row from its direction cell.

        Args:
            direction: Text of the "Uplata/isplata" column

        Returns:
            "income" or "expense"
        """
        text = str(direction).lower()
        if CREDIT_KEYWORD in text and DEBIT_KEYWORD not in text:
            return INCOME
        return EXPENSE

    @staticmethod
    def pick_category_icon(description: str) -> str:
        """Pick an icon for a new category from the transaction description."""
        return first_matching_rule(description, ICON_RULES) or DEFAULT_ICON


# Singleton instance
transaction_classifier = TransactionClassifier()
