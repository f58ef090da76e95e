"""
Fixed phrases spoken by the concierge.

Every agent draws its canned lines from here so the voice stays consistent
across intents. Business-specific values are injected from configuration,
not hardcoded.
"""

from concierge.config import settings
from concierge.schemas.conversation_schema import Intent

_biz = settings.business

CALL_GREETING = (
    f"Thank you for calling {_biz.name}! I can help you make a reservation, "
    f"tell you about our menu, or get you more information. What can I do for you today?"
)

GENERIC_APOLOGY = (
    "I apologize, but I'm having trouble processing your request right now. "
    "Could you please repeat what you need help with?"
)

CLARIFY_CAPABILITIES = (
    "I'd be happy to help! I can make a reservation for you, tell you about our "
    "menu and today's specials, or take your details so our team can follow up. "
    "Which would you like?"
)

SWITCH_ACKNOWLEDGMENTS: dict[Intent, str] = {
    Intent.BOOKING: "Of course, let me help you with a reservation.",
    Intent.MENU: "Absolutely! I'd love to tell you about our menu.",
    Intent.LEAD: "Sure, I can get you that information.",
}

TRANSFER_TO_HUMAN = (
    "Let me connect you with a member of our team. Please hold for just a moment."
)

CALL_ENDED = f"Thank you for calling {_biz.name}. Have a wonderful day!"

# ---- Lead capture ---- #

LEAD_GREETING = (
    f"I'd be happy to help you learn more about {_biz.name}! "
    f"May I start with your name?"
)
LEAD_ASK_NAME = "I'd be happy to help with that. May I have your name, please?"
LEAD_ASK_EMAIL = "Thanks, {name}! What's the best email address to send you information?"
LEAD_RECOVERY = (
    "I apologize, I'm having trouble saving your details right now. "
    "I'll have someone from our team call you back to make sure we get everything."
)
LEAD_NEW_REQUEST = "Of course! What else can I help you with?"

# ---- Reservations ---- #

BOOKING_GREETING = (
    "I'd be happy to help you make a reservation! "
    "How many people will be joining you, and when would you like to come in?"
)
BOOKING_ASK_NAME = "What name should I put the reservation under?"
BOOKING_ASK_PARTY_SIZE = "How many people will be in your party?"
BOOKING_ASK_MODIFICATION = (
    "Of course! What would you like to change about the reservation?"
)
BOOKING_RECOVERY = (
    "I apologize, I'm having trouble finalizing your reservation right now. "
    "Let me have someone from our team call you back to confirm it."
)
BOOKING_IN_PROGRESS = "I'm finalizing that reservation for you right now."

# ---- Menu ---- #

MENU_INTRO = "I'd love to tell you about our menu! "
MENU_FOLLOW_UP = "Would you like to hear about anything else?"
MENU_NOTHING_TO_REPEAT = "I haven't read any menu items yet. "
