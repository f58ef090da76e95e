"""
Mock menu catalog.

In production, this would read from the restaurant's POS or a CMS. The
catalog is read-only; the ``format_*`` helpers produce the exact strings the
menu agent speaks, which is what gets replayed on a "repeat that" request.
"""

import logging
import re
from typing import Optional

from concierge.schemas.menu_schema import MenuItem

logger = logging.getLogger(__name__)

DEFAULT_MENU: list[MenuItem] = [
    MenuItem(
        id="1", name="Grilled Salmon", price=28, category="Entree",
        description="Atlantic salmon with lemon herb butter and seasonal vegetables",
        dietary_notes="Gluten-free available",
    ),
    MenuItem(
        id="2", name="Beef Tenderloin", price=42, category="Entree",
        description="Eight ounce center cut with red wine reduction and roasted potatoes",
    ),
    MenuItem(
        id="3", name="Vegetarian Pasta", price=22, category="Entree",
        description="House-made pasta with seasonal vegetables and garlic olive oil",
        dietary_notes="Vegetarian, vegan option available",
    ),
    MenuItem(
        id="4", name="Caesar Salad", price=14, category="Appetizer",
        description="Crisp romaine, parmesan, and house-made croutons",
    ),
    MenuItem(
        id="5", name="Lobster Bisque", price=16, category="Appetizer",
        description="Creamy bisque with fresh Maine lobster",
    ),
    MenuItem(
        id="6", name="Chocolate Lava Cake", price=12, category="Dessert",
        description="Warm chocolate cake with a molten center and vanilla ice cream",
        dietary_notes="Vegetarian",
    ),
    MenuItem(
        id="7", name="Pan-Seared Duck", price=36, category="Special",
        description="Duck breast with cherry gastrique and wild rice",
        dietary_notes="Limited quantity", is_special=True,
    ),
    MenuItem(
        id="8", name="Truffle Risotto", price=32, category="Special",
        description="Arborio rice with black truffle and aged parmesan",
        dietary_notes="Vegetarian", is_special=True,
    ),
]

CATEGORY_ALIASES: dict[str, str] = {
    "appetizer": "Appetizer", "starter": "Appetizer", "salad": "Appetizer", "soup": "Appetizer",
    "entree": "Entree", "main": "Entree", "dinner": "Entree",
    "dessert": "Dessert", "sweet": "Dessert",
}


def _price(value: float) -> str:
    return f"${value:.0f}" if value == int(value) else f"${value:.2f}"


class MenuCatalog:
    """Read-only item, category, and specials lookups plus voice summaries."""

    def __init__(self, items: Optional[list[MenuItem]] = None) -> None:
        self._items = list(items if items is not None else DEFAULT_MENU)

    def get_all_items(self) -> list[MenuItem]:
        return [i for i in self._items if i.available]

    def get_by_category(self, category: str) -> list[MenuItem]:
        wanted = category.lower()
        return [i for i in self.get_all_items() if i.category.lower() == wanted]

    def get_specials(self) -> list[MenuItem]:
        return [i for i in self.get_all_items() if i.is_special]

    def get_categories(self) -> list[str]:
        seen: list[str] = []
        for item in self.get_all_items():
            if not item.is_special and item.category not in seen:
                seen.append(item.category)
        return seen

    def get_by_dietary(self, term: str) -> list[MenuItem]:
        term = term.lower()
        return [
            i for i in self.get_all_items()
            if i.dietary_notes and term in i.dietary_notes.lower()
        ]

    def search(self, text: str) -> list[MenuItem]:
        """Items whose full name, or any distinctive word of it, appears in ``text``."""
        lower = text.lower()
        exact = [i for i in self.get_all_items() if i.name.lower() in lower]
        if exact:
            return exact
        return [
            i for i in self.get_all_items()
            if any(
                len(word) > 4 and re.search(r"\b" + re.escape(word) + r"s?\b", lower)
                for word in i.name.lower().replace("-", " ").split()
            )
        ]

    def match_category(self, text: str) -> Optional[str]:
        lower = text.lower()
        for alias, category in CATEGORY_ALIASES.items():
            if re.search(r"\b" + alias + r"s?\b", lower):
                return category
        return None

    # ------------------------------------------------------------------ #
    # Voice formatting
    # ------------------------------------------------------------------ #

    @staticmethod
    def format_item_for_voice(item: MenuItem) -> str:
        """``Name - Description for $Price (notes)``"""
        text = f"{item.name} - {item.description} for {_price(item.price)}"
        if item.dietary_notes:
            text += f" ({item.dietary_notes})"
        return text

    def format_items_for_voice(self, items: list[MenuItem]) -> list[str]:
        return [self.format_item_for_voice(i) for i in items]

    def format_specials_for_voice(self) -> tuple[str, list[str]]:
        """Spoken specials sentence plus the item lines it contains."""
        lines = self.format_items_for_voice(self.get_specials())
        if not lines:
            return "We don't have any specials today.", []
        return f"Today's specials are: {'. '.join(lines)}.", lines

    def format_category_for_voice(self, category: str) -> tuple[str, list[str]]:
        lines = self.format_items_for_voice(self.get_by_category(category))
        if not lines:
            return f"We don't have any {category.lower()}s on the menu right now.", []
        return f"Our {category.lower()}s include: {'. '.join(lines)}.", lines

    def price_ranges_for_voice(self) -> str:
        parts = []
        for category in self.get_categories():
            prices = sorted(i.price for i in self.get_by_category(category))
            if prices[0] == prices[-1]:
                parts.append(f"{category.lower()}s are {_price(prices[0])}")
            else:
                parts.append(
                    f"{category.lower()}s run from {_price(prices[0])} to {_price(prices[-1])}"
                )
        if not parts:
            return "I don't have pricing on hand right now."
        sentence = "; ".join(parts)
        return sentence[0].upper() + sentence[1:] + "."

    def menu_overview_for_voice(self) -> tuple[str, list[str]]:
        categories = [c.lower() + "s" for c in self.get_categories()]
        listed = ", ".join(categories[:-1]) + f" and {categories[-1]}" if len(categories) > 1 else "".join(categories)
        specials_text, lines = self.format_specials_for_voice()
        return f"We serve {listed}, plus daily specials. {specials_text}", lines
