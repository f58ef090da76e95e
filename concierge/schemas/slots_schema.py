"""Per-intent slot views over the shared collected data.

Each intent has its own closed set of legal fields. ``slots_for_intent``
validates ``CollectedData`` into the matching variant, so an agent can only
complete once the fields its intent requires are actually present.
"""

from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter

from concierge.schemas.conversation_schema import CollectedData, Intent


class LeadSlots(BaseModel):
    kind: Literal["lead"] = "lead"
    name: str
    email: str
    phone: Optional[str] = None
    use_case: Optional[str] = None


class BookingSlots(BaseModel):
    kind: Literal["booking"] = "booking"
    name: str
    party_size: int = Field(ge=1)
    date_time: str
    phone: Optional[str] = None
    special_requests: Optional[str] = None

    @property
    def date(self) -> str:
        return self.date_time.split(" ")[0]

    @property
    def time(self) -> str:
        return self.date_time.split(" ")[1]


class MenuSlots(BaseModel):
    kind: Literal["menu"] = "menu"


IntentSlots = Annotated[
    Union[LeadSlots, BookingSlots, MenuSlots],
    Field(discriminator="kind"),
]

REQUIRED_FIELDS: dict[Intent, tuple[str, ...]] = {
    Intent.LEAD: ("name", "email"),
    Intent.BOOKING: ("party_size", "date_time", "name"),
    Intent.MENU: (),
}

_SLOTS_ADAPTER: TypeAdapter = TypeAdapter(IntentSlots)


def slots_for_intent(
    intent: Intent, collected: CollectedData
) -> Union[LeadSlots, BookingSlots, MenuSlots]:
    """Build the typed slot view for ``intent``.

    Fields that are not legal for the intent are dropped.

    Raises:
        pydantic.ValidationError: a field the intent requires is missing.
    """
    return _SLOTS_ADAPTER.validate_python({**collected.filled(), "kind": intent.value})
