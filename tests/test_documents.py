"""
Tests for copy-on-write document edits
"""
from datetime import date, datetime
from decimal import Decimal

import pytest

from domain import documents
from domain.entities import HotelRoom, Itinerary, ItineraryDay, PricingWorksheet
from domain.errors import NotFoundError
from validators import ValidationError


@pytest.fixture
def three_day_itinerary():
    return Itinerary(
        id='it1',
        title='Kyoto',
        days=(
            ItineraryDay(id='d1', day_number=1, date=date(2024, 7, 1)),
            ItineraryDay(id='d2', day_number=2, date=date(2024, 7, 2)),
            ItineraryDay(id='d3', day_number=3, date=date(2024, 7, 3)),
        ),
    )


@pytest.mark.unit
class TestItineraryDays:
    """Tests for adding and removing days"""

    def test_remove_middle_day_renumbers(self, three_day_itinerary):
        edited = documents.remove_itinerary_day(three_day_itinerary, 'd2')
        assert [(d.id, d.day_number) for d in edited.days] == [('d1', 1), ('d3', 2)]
        # Original document untouched
        assert len(three_day_itinerary.days) == 3

    def test_cannot_remove_only_day(self):
        itinerary = Itinerary(id='it1', days=(ItineraryDay(id='d1', day_number=1),))
        with pytest.raises(ValidationError):
            documents.remove_itinerary_day(itinerary, 'd1')

    def test_remove_unknown_day(self, three_day_itinerary):
        with pytest.raises(NotFoundError):
            documents.remove_itinerary_day(three_day_itinerary, 'd9')

    def test_add_day_numbers_after_last(self, three_day_itinerary):
        edited = documents.add_itinerary_day(three_day_itinerary, date(2024, 7, 4))
        assert edited.days[-1].day_number == 4
        assert edited.days[-1].date == date(2024, 7, 4)
        edited.validate()


@pytest.mark.unit
class TestActivities:
    """Tests for activity edits within a day"""

    def test_add_activity_assigns_id(self, three_day_itinerary):
        edited = documents.add_activity(three_day_itinerary, 'd1', time='19:00', title='Dinner', type='meal')
        activity = edited.days[0].activities[0]
        assert activity.id
        assert activity.title == 'Dinner'
        assert three_day_itinerary.days[0].activities == ()

    def test_add_activity_rejects_bad_time(self, three_day_itinerary):
        with pytest.raises(ValidationError):
            documents.add_activity(three_day_itinerary, 'd1', time='25:00')

    def test_add_activity_rejects_unknown_field(self, three_day_itinerary):
        with pytest.raises(ValidationError):
            documents.add_activity(three_day_itinerary, 'd1', price=10)

    def test_update_and_remove_activity(self, three_day_itinerary):
        edited = documents.add_activity(three_day_itinerary, 'd2', title='Temple')
        activity_id = edited.days[1].activities[0].id

        edited = documents.update_activity(edited, 'd2', activity_id, location='Kiyomizu')
        assert edited.days[1].activities[0].location == 'Kiyomizu'

        with pytest.raises(ValidationError):
            documents.update_activity(edited, 'd2', activity_id, id='other')

        edited = documents.remove_activity(edited, 'd2', activity_id)
        assert edited.days[1].activities == ()

    def test_update_missing_activity(self, three_day_itinerary):
        with pytest.raises(NotFoundError):
            documents.update_activity(three_day_itinerary, 'd1', 'nope', title='x')


@pytest.mark.unit
class TestCostItems:
    """Tests for worksheet cost item edits"""

    def test_cost_item_lifecycle(self):
        worksheet = PricingWorksheet(id='p1', pax=4)
        worksheet = documents.add_cost_item(worksheet, category='Transport',
                                            unit_cost=Decimal('80'), quantity=2)
        item_id = worksheet.cost_items[0].id

        worksheet = documents.update_cost_item(worksheet, item_id, quantity=3)
        assert worksheet.cost_items[0].line_total == Decimal('240')

        worksheet = documents.remove_cost_item(worksheet, item_id)
        assert worksheet.cost_items == ()

    def test_negative_cost_rejected(self):
        with pytest.raises(ValidationError):
            documents.add_cost_item(PricingWorksheet(id='p1'), unit_cost=Decimal('-1'))


@pytest.mark.unit
class TestRoomAllocations:
    """Tests for guest allocations"""

    def test_allocate_and_release(self):
        room = HotelRoom(id='r1', vendor_id='v1', room_number='12')
        room = documents.allocate_room(room, 'b1', 'Ana', datetime(2024, 7, 1), datetime(2024, 7, 3))
        allocation = room.allocations[0]
        assert allocation.room_id == 'r1'
        assert allocation.booking_id == 'b1'

        room = documents.release_allocation(room, allocation.id)
        assert room.allocations == ()

    def test_blank_booking_reference_is_none(self):
        room = documents.allocate_room(HotelRoom(id='r1'), '', 'Walk-in')
        assert room.allocations[0].booking_id is None

    def test_check_out_before_check_in(self):
        with pytest.raises(ValidationError):
            documents.allocate_room(HotelRoom(id='r1'), None, 'Ana',
                                    datetime(2024, 7, 3), datetime(2024, 7, 1))
