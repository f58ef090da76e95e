"""
Menu agent: answers questions about specials, categories, prices, and
dietary options.

Whatever item lines are spoken are saved as ``last_menu_read`` so the caller
can ask to hear them again, here or through the repeat override.
"""

from typing import Optional

from concierge.agents.base_agent import SlotFillingAgent
from concierge.conversation.selectors import has_keywords, has_required_data
from concierge.conversation.session_store import SessionStore
from concierge.conversation.slot_extractor import SlotExtractor
from concierge.logging_context import get_call_logger
from concierge.prompts.system_prompts import MENU_FOLLOW_UP, MENU_INTRO, MENU_NOTHING_TO_REPEAT
from concierge.schemas.conversation_schema import Intent, Session
from concierge.tools.menu import MenuCatalog

logger = get_call_logger(__name__)

REPEAT_CUES = ("again", "one more time", "repeat")
SPECIALS_CUES = ("special", "today")
PRICE_CUES = ("price", "cost", "how much", "expensive", "cheap")
DIETARY_TERMS = ("vegetarian", "vegan", "gluten", "dairy")


class MenuAgent(SlotFillingAgent):
    """Menu questions. There is nothing to collect, so it is always complete."""

    intent = Intent.MENU

    def __init__(
        self,
        store: SessionStore,
        catalog: Optional[MenuCatalog] = None,
        extractor: Optional[SlotExtractor] = None,
    ) -> None:
        super().__init__(store, extractor)
        self.catalog = catalog or MenuCatalog()

    def is_complete(self, session: Session) -> bool:
        return has_required_data(session, Intent.MENU)

    async def respond(self, session: Session, text: str) -> str:
        kind, detail = self._analyze(text)
        logger.debug("Menu request: %s", kind)

        if kind == "repeat":
            if session.last_menu_read:
                joined = ". ".join(session.last_menu_read)
                return f"Of course! Here are those menu items again: {joined}. {MENU_FOLLOW_UP}"
            spoken, lines = self.catalog.menu_overview_for_voice()
            return self._speak(session, MENU_NOTHING_TO_REPEAT + spoken, lines)

        if kind == "specials":
            spoken, lines = self.catalog.format_specials_for_voice()
        elif kind == "dietary":
            items = self.catalog.get_by_dietary(detail)
            lines = self.catalog.format_items_for_voice(items)
            spoken = (
                f"For {detail} options, we have: {'. '.join(lines)}."
                if lines
                else f"I'm sorry, I don't see anything marked {detail} on tonight's menu."
            )
        elif kind == "category":
            spoken, lines = self.catalog.format_category_for_voice(detail)
        elif kind == "items":
            lines = self.catalog.format_items_for_voice(self.catalog.search(text))
            spoken = f"{'. '.join(lines)}."
        elif kind == "pricing":
            spoken, lines = self.catalog.price_ranges_for_voice(), []
        else:
            spoken, lines = self.catalog.menu_overview_for_voice()

        if not session.last_menu_read and kind in ("overview", "specials"):
            spoken = MENU_INTRO + spoken
        return self._speak(session, spoken, lines)

    def _speak(self, session: Session, spoken: str, lines: list[str]) -> str:
        if lines:
            self.store.update(session.call_id, last_menu_read=lines)
        return f"{spoken} {MENU_FOLLOW_UP}"

    def _analyze(self, text: str) -> tuple[str, Optional[str]]:
        """Classify a menu question as (kind, detail)."""
        if has_keywords(text, REPEAT_CUES):
            return "repeat", None
        for term in DIETARY_TERMS:
            if has_keywords(text, (term,)):
                return "dietary", term
        category = self.catalog.match_category(text)
        if category is not None:
            return "category", category
        if has_keywords(text, SPECIALS_CUES):
            return "specials", None
        if self.catalog.search(text):
            return "items", None
        if has_keywords(text, PRICE_CUES):
            return "pricing", None
        return "overview", None
