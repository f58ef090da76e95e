"""Tests for the availability board, menu catalog, and mock CRM."""

import pytest

from concierge.schemas.crm_schema import ContactPayload, ReservationPayload
from concierge.tools.availability import AvailabilityBoard
from concierge.tools.crm import CRMError, MockCRMService
from tests.conftest import NEXT_MONDAY_ISO, TODAY, TODAY_ISO, TOMORROW_ISO, make_board


class TestAvailabilityBoard:
    def test_slot_checks(self, availability):
        assert availability.is_slot_available(TODAY_ISO, "19:00", 4)
        assert not availability.is_slot_available(TODAY_ISO, "19:00", 9)
        assert not availability.is_slot_available(TODAY_ISO, "19:15", 2)
        assert not availability.is_slot_available(NEXT_MONDAY_ISO, "19:00", 2)
        assert not availability.is_slot_available("2030-01-01", "19:00", 2)

    def test_reserve_and_release(self, availability):
        slot = availability.get_day(TODAY_ISO).find("19:00")
        reference = availability.reserve_slot(TODAY_ISO, "19:00", 2, {"name": "Sarah"})
        assert reference.startswith("HOLD-")
        assert slot.remaining_slots == 1
        assert availability.get_hold(reference).name == "Sarah"

        assert availability.release_slot(reference) is True
        assert slot.remaining_slots == 2
        assert availability.release_slot(reference) is False

    def test_last_table_has_one_winner(self):
        board = make_board(today_slots={"19:00": 1})
        assert board.reserve_slot(TODAY_ISO, "19:00", 2) is not None
        assert board.reserve_slot(TODAY_ISO, "19:00", 2) is None
        assert not board.is_slot_available(TODAY_ISO, "19:00", 2)

    def test_alternatives_same_day_closest_first(self, availability):
        offers = availability.suggest_alternatives(TODAY_ISO, "19:00", 2, limit=1)
        assert offers == [(TODAY_ISO, "18:30")]
        offers = availability.suggest_alternatives(TODAY_ISO, "19:00", 2)
        assert offers == [(TODAY_ISO, "18:30"), (TODAY_ISO, "20:00")]

    def test_alternatives_fall_through_to_later_days(self):
        board = make_board(today_slots={"19:00": 0})
        assert board.suggest_alternatives(TODAY_ISO, "19:00", 2) == [(TOMORROW_ISO, "19:00")]

    def test_generated_schedule_is_seeded_and_closed_mondays(self):
        first = AvailabilityBoard(start=TODAY, days=7, seed=7)
        second = AvailabilityBoard(start=TODAY, days=7, seed=7)
        assert first.get_day(NEXT_MONDAY_ISO).is_open is False
        assert first.get_day(TODAY_ISO) == second.get_day(TODAY_ISO)
        assert first.get_available_slots(NEXT_MONDAY_ISO, 2) == []


class TestMenuCatalog:
    def test_specials(self, catalog):
        spoken, lines = catalog.format_specials_for_voice()
        assert spoken.startswith("Today's specials are: ")
        assert [line.split(" - ")[0] for line in lines] == ["Pan-Seared Duck", "Truffle Risotto"]

    def test_item_format(self, catalog):
        (item,) = catalog.search("the chocolate cake")
        assert catalog.format_item_for_voice(item) == (
            "Chocolate Lava Cake - Warm chocolate cake with a molten center and vanilla "
            "ice cream for $12 (Vegetarian)"
        )

    def test_match_category_aliases(self, catalog):
        assert catalog.match_category("any starters?") == "Appetizer"
        assert catalog.match_category("something sweet") == "Dessert"
        assert catalog.match_category("hello") is None

    def test_categories_exclude_specials(self, catalog):
        assert catalog.get_categories() == ["Entree", "Appetizer", "Dessert"]

    def test_dietary(self, catalog):
        names = [i.name for i in catalog.get_by_dietary("gluten")]
        assert names == ["Grilled Salmon"]


class TestMockCRM:
    @pytest.mark.asyncio
    async def test_replayed_key_returns_same_record(self, crm):
        payload = ReservationPayload(name="Sarah", party_size=2, date=TODAY_ISO, time="19:00")
        first = await crm.create_reservation(payload, "key-1")
        second = await crm.create_reservation(payload, "key-1")
        assert first == second
        assert len(crm.reservations) == 1

    @pytest.mark.asyncio
    async def test_upsert_updates_by_email(self, crm):
        await crm.upsert_contact(ContactPayload(email="a@example.com", firstname="A"), "k1")
        result = await crm.upsert_contact(
            ContactPayload(email="a@example.com", firstname="Alice"), "k2"
        )
        assert result["success"] is True
        (contact,) = crm.contacts.values()
        assert contact["firstname"] == "Alice"

    @pytest.mark.asyncio
    async def test_disabled_crm_is_skipped(self):
        crm = MockCRMService(enabled=False)
        result = await crm.upsert_contact(ContactPayload(email="a@example.com", firstname="A"), "k")
        assert result == {"success": False, "skipped": True, "reason": "not_configured"}
        assert crm.contacts == {}

    @pytest.mark.asyncio
    async def test_failing_operation_raises(self):
        crm = MockCRMService(enabled=True, fail_operations={"create_deal"})
        from concierge.schemas.crm_schema import DealPayload

        with pytest.raises(CRMError):
            await crm.create_deal(DealPayload(deal_name="x", description="y"), None, "k")

    @pytest.mark.asyncio
    async def test_reset(self, crm):
        await crm.upsert_contact(ContactPayload(email="a@example.com", firstname="A"), "k1")
        crm.reset()
        assert crm.contacts == {}
        assert crm.calls == []
