"""Menu item data model."""

from typing import Optional

from pydantic import BaseModel


class MenuItem(BaseModel):
    """A dish as the catalog knows it."""
    id: str
    name: str
    description: str
    price: float
    category: str
    available: bool = True
    dietary_notes: Optional[str] = None
    is_special: bool = False
