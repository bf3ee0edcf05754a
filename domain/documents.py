"""
Copy-on-write edits for documents with embedded sub-records.

Itineraries (days -> activities), pricing worksheets (cost items) and hotel
rooms (allocations) are stored as whole documents. Every function here takes a
document and returns a *new* document; nothing is mutated in place, so an edit
only becomes visible once the caller saves it through the store.
"""

from dataclasses import replace
from datetime import datetime
from typing import Optional

from domain.entities import (
    CostItem,
    HotelRoom,
    Itinerary,
    ItineraryActivity,
    ItineraryDay,
    PricingWorksheet,
    RoomAllocation,
    generate_uuid,
    parse_datetime,
)
from domain.errors import NotFoundError
from validators import ValidationError


def _find_index(items, item_id, kind):
    for idx, item in enumerate(items):
        if item.id == item_id:
            return idx
    raise NotFoundError(kind, item_id)


def _replace_at(items, idx, new_item):
    return items[:idx] + (new_item,) + items[idx + 1:]


def _new_child(cls, fields):
    if 'id' in fields:
        raise ValidationError("id is assigned automatically", field='id')
    try:
        child = cls(id=generate_uuid(), **fields)
    except TypeError as e:
        raise ValidationError(str(e))
    return child


# =============================================================================
# ITINERARY DAYS & ACTIVITIES
# =============================================================================

def renumber_days(days):
    """Reassign day numbers 1..N in document order."""
    return tuple(
        day if day.day_number == number else replace(day, day_number=number)
        for number, day in enumerate(days, start=1)
    )


def add_itinerary_day(itinerary: Itinerary, date=None) -> Itinerary:
    """Append an empty day numbered after the current last day."""
    day = ItineraryDay(id=generate_uuid(), day_number=len(itinerary.days) + 1, date=date)
    return replace(itinerary, days=renumber_days(tuple(itinerary.days) + (day,)))


def remove_itinerary_day(itinerary: Itinerary, day_id: str) -> Itinerary:
    """
    Drop a day and renumber the rest so numbering stays contiguous.

    An itinerary always keeps at least one day.
    """
    days = tuple(itinerary.days)
    idx = _find_index(days, day_id, 'itinerary_days')
    if len(days) <= 1:
        raise ValidationError("An itinerary must keep at least one day", field='days')
    return replace(itinerary, days=renumber_days(days[:idx] + days[idx + 1:]))


def add_activity(itinerary: Itinerary, day_id: str, **fields) -> Itinerary:
    days = tuple(itinerary.days)
    idx = _find_index(days, day_id, 'itinerary_days')
    activity = _new_child(ItineraryActivity, fields)
    activity.validate()
    day = days[idx]
    new_day = replace(day, activities=tuple(day.activities) + (activity,))
    return replace(itinerary, days=_replace_at(days, idx, new_day))


def update_activity(itinerary: Itinerary, day_id: str, activity_id: str, **changes) -> Itinerary:
    days = tuple(itinerary.days)
    day_idx = _find_index(days, day_id, 'itinerary_days')
    day = days[day_idx]
    activities = tuple(day.activities)
    act_idx = _find_index(activities, activity_id, 'itinerary_activities')
    if 'id' in changes:
        raise ValidationError("Activity id cannot be changed", field='id')
    activity = replace(activities[act_idx], **changes)
    activity.validate()
    new_day = replace(day, activities=_replace_at(activities, act_idx, activity))
    return replace(itinerary, days=_replace_at(days, day_idx, new_day))


def remove_activity(itinerary: Itinerary, day_id: str, activity_id: str) -> Itinerary:
    days = tuple(itinerary.days)
    day_idx = _find_index(days, day_id, 'itinerary_days')
    day = days[day_idx]
    activities = tuple(a for a in day.activities if a.id != activity_id)
    new_day = replace(day, activities=activities)
    return replace(itinerary, days=_replace_at(days, day_idx, new_day))


# =============================================================================
# PRICING COST ITEMS
# =============================================================================

def add_cost_item(worksheet: PricingWorksheet, **fields) -> PricingWorksheet:
    item = _new_child(CostItem, fields)
    item.validate()
    return replace(worksheet, cost_items=tuple(worksheet.cost_items) + (item,))


def update_cost_item(worksheet: PricingWorksheet, item_id: str, **changes) -> PricingWorksheet:
    items = tuple(worksheet.cost_items)
    idx = _find_index(items, item_id, 'cost_items')
    if 'id' in changes:
        raise ValidationError("Cost item id cannot be changed", field='id')
    item = replace(items[idx], **changes)
    item.validate()
    return replace(worksheet, cost_items=_replace_at(items, idx, item))


def remove_cost_item(worksheet: PricingWorksheet, item_id: str) -> PricingWorksheet:
    return replace(
        worksheet,
        cost_items=tuple(c for c in worksheet.cost_items if c.id != item_id),
    )


# =============================================================================
# ROOM ALLOCATIONS
# =============================================================================

def allocate_room(room: HotelRoom, booking_id: Optional[str], guest_name: str,
                  check_in: datetime = None, check_out: datetime = None) -> HotelRoom:
    """Add a guest allocation to a room."""
    check_in = parse_datetime(check_in)
    check_out = parse_datetime(check_out)
    if check_in and check_out and check_out < check_in:
        raise ValidationError("Check-out cannot be before check-in", field='check_out')
    allocation = RoomAllocation(
        id=generate_uuid(),
        room_id=room.id,
        booking_id=booking_id or None,
        guest_name=guest_name,
        check_in=check_in,
        check_out=check_out,
    )
    return replace(room, allocations=tuple(room.allocations) + (allocation,))


def release_allocation(room: HotelRoom, allocation_id: str) -> HotelRoom:
    return replace(
        room,
        allocations=tuple(a for a in room.allocations if a.id != allocation_id),
    )
