"""
Entity model for the TourOps back office.
Defines every record kind held by the data store, with JSON (de)serialization.

Records are immutable; edits are made with ``dataclasses.replace`` and go back
through the store. Persisted keys use the camelCase names the mobile client
has always written, so existing data keeps loading.
"""

import uuid
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional, Tuple

from dateutil import parser as date_parser

from validators import (
    ensure,
    validate_choice,
    validate_non_negative,
    validate_time_of_day,
)


BOOKING_STATUSES = ('confirmed', 'pending', 'cancelled')
# 'overdue' is derived at read time and never persisted
INVOICE_STATUSES = ('paid', 'unpaid')
VENDOR_TYPES = ('hotel', 'transport', 'guide', 'other')
TASK_STATUSES = ('todo', 'in_progress', 'done')
TASK_CATEGORIES = ('visa', 'ticket', 'briefing', 'other')
ACTIVITY_TYPES = ('transport', 'activity', 'meal', 'accommodation', 'free')

ZERO = Decimal('0')


def generate_uuid():
    """Generate a new UUID."""
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Current instant as a naive UTC datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# =============================================================================
# VALUE CONVERSION
# =============================================================================

def parse_datetime(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 string (or datetime) into a naive UTC datetime."""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        parsed = date_parser.isoparse(value)
    else:
        raise ValueError(f"Cannot parse datetime from {value!r}")
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def format_datetime(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return parse_datetime(value).isoformat() + 'Z'


def parse_date(value: Any) -> Optional[date]:
    """Parse a calendar date; blank means unset."""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date_parser.isoparse(value).date()
    raise ValueError(f"Cannot parse date from {value!r}")


def to_decimal(value: Any) -> Decimal:
    """Convert a stored number to Decimal without inheriting float noise."""
    if value is None or value == '':
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError(f"Cannot convert {value!r} to an amount")
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"Cannot convert {value!r} to an amount")


def decimal_to_json(value: Decimal):
    """
    JSON-friendly amount that reads back as exactly the same Decimal.

    Integral amounts are ints. Amounts whose shortest float form reads back
    unchanged (12.5, 99.95) are floats. Anything finer is written as its
    decimal string, which from_dict reads without loss.
    """
    value = to_decimal(value)
    if value == value.to_integral_value():
        return int(value)
    as_float = float(value)
    if Decimal(repr(as_float)) == value:
        return as_float
    return str(value)


def _optional_ref(value: Any) -> Optional[str]:
    return value or None


# =============================================================================
# CLIENTS
# =============================================================================

@dataclass(frozen=True)
class Client:
    """Customer of the tour operator."""
    KIND = 'clients'

    id: str
    name: str = ''
    email: str = ''
    phone: str = ''
    notes: str = ''
    created_at: Optional[datetime] = None

    def validate(self):
        pass

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'email': self.email,
            'phone': self.phone,
            'notes': self.notes,
            'createdAt': format_datetime(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Client':
        return cls(
            id=data['id'],
            name=data.get('name', ''),
            email=data.get('email', ''),
            phone=data.get('phone', ''),
            notes=data.get('notes', ''),
            created_at=parse_datetime(data.get('createdAt')),
        )


# =============================================================================
# BOOKINGS
# =============================================================================

@dataclass(frozen=True)
class Booking:
    """A sold trip for one client."""
    KIND = 'bookings'

    id: str
    client_id: Optional[str] = None
    trip_name: str = ''
    destination: str = ''
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    pax: int = 1
    status: str = 'pending'
    total_amount: Decimal = ZERO
    paid_amount: Decimal = ZERO
    requirements: str = ''
    created_at: Optional[datetime] = None

    @property
    def balance_due(self) -> Decimal:
        return self.total_amount - self.paid_amount

    def validate(self):
        ensure(validate_choice(self.status, BOOKING_STATUSES), 'status')
        ensure(validate_non_negative(self.pax), 'pax')
        ensure(validate_non_negative(self.total_amount), 'total_amount')
        ensure(validate_non_negative(self.paid_amount), 'paid_amount')

    def to_dict(self):
        return {
            'id': self.id,
            'clientId': self.client_id,
            'tripName': self.trip_name,
            'destination': self.destination,
            'startDate': format_datetime(self.start_date),
            'endDate': format_datetime(self.end_date),
            'pax': self.pax,
            'status': self.status,
            'totalAmount': decimal_to_json(self.total_amount),
            'paidAmount': decimal_to_json(self.paid_amount),
            'requirements': self.requirements,
            'createdAt': format_datetime(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Booking':
        return cls(
            id=data['id'],
            client_id=_optional_ref(data.get('clientId')),
            trip_name=data.get('tripName', ''),
            destination=data.get('destination', ''),
            start_date=parse_datetime(data.get('startDate')),
            end_date=parse_datetime(data.get('endDate')),
            pax=int(data.get('pax', 1)),
            status=data.get('status', 'pending'),
            total_amount=to_decimal(data.get('totalAmount')),
            paid_amount=to_decimal(data.get('paidAmount')),
            requirements=data.get('requirements', ''),
            created_at=parse_datetime(data.get('createdAt')),
        )


# =============================================================================
# FINANCE - EXPENSES, INVOICES, BUDGET ITEMS
# =============================================================================

@dataclass(frozen=True)
class Expense:
    """Money spent, optionally against a booking."""
    KIND = 'expenses'

    id: str
    booking_id: Optional[str] = None
    category: str = ''
    description: str = ''
    amount: Decimal = ZERO
    date: Optional[datetime] = None

    def validate(self):
        ensure(validate_non_negative(self.amount), 'amount')

    def to_dict(self):
        return {
            'id': self.id,
            'bookingId': self.booking_id,
            'category': self.category,
            'description': self.description,
            'amount': decimal_to_json(self.amount),
            'date': format_datetime(self.date),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Expense':
        return cls(
            id=data['id'],
            booking_id=_optional_ref(data.get('bookingId')),
            category=data.get('category', ''),
            description=data.get('description', ''),
            amount=to_decimal(data.get('amount')),
            date=parse_datetime(data.get('date')),
        )


@dataclass(frozen=True)
class Invoice:
    """Billing record for part or all of a booking."""
    KIND = 'invoices'

    id: str
    booking_id: Optional[str] = None
    client_id: Optional[str] = None
    amount: Decimal = ZERO
    status: str = 'unpaid'
    due_date: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @property
    def number(self) -> str:
        """Short display number, e.g. INV-3F2A9C."""
        return f"INV-{self.id[:6].upper()}"

    def validate(self):
        ensure(validate_choice(self.status, INVOICE_STATUSES), 'status')
        ensure(validate_non_negative(self.amount), 'amount')

    def to_dict(self):
        return {
            'id': self.id,
            'bookingId': self.booking_id,
            'clientId': self.client_id,
            'amount': decimal_to_json(self.amount),
            'status': self.status,
            'dueDate': format_datetime(self.due_date),
            'createdAt': format_datetime(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Invoice':
        status = data.get('status', 'unpaid')
        if status == 'overdue':
            # Legacy value; overdue is recomputed from the due date
            status = 'unpaid'
        return cls(
            id=data['id'],
            booking_id=_optional_ref(data.get('bookingId')),
            client_id=_optional_ref(data.get('clientId')),
            amount=to_decimal(data.get('amount')),
            status=status,
            due_date=parse_datetime(data.get('dueDate')),
            created_at=parse_datetime(data.get('createdAt')),
        )


@dataclass(frozen=True)
class BudgetItem:
    """Planned spend for one category of a booking."""
    KIND = 'budget_items'

    id: str
    booking_id: Optional[str] = None
    category: str = ''
    budget_amount: Decimal = ZERO
    actual_amount: Decimal = ZERO

    def validate(self):
        ensure(validate_non_negative(self.budget_amount), 'budget_amount')
        ensure(validate_non_negative(self.actual_amount), 'actual_amount')

    def to_dict(self):
        return {
            'id': self.id,
            'bookingId': self.booking_id,
            'category': self.category,
            'budgetAmount': decimal_to_json(self.budget_amount),
            'actualAmount': decimal_to_json(self.actual_amount),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'BudgetItem':
        return cls(
            id=data['id'],
            booking_id=_optional_ref(data.get('bookingId')),
            category=data.get('category', ''),
            budget_amount=to_decimal(data.get('budgetAmount')),
            actual_amount=to_decimal(data.get('actualAmount')),
        )


# =============================================================================
# SUPPLIERS - VENDORS & HOTEL ROOMS
# =============================================================================

@dataclass(frozen=True)
class Vendor:
    """Hotel, transport company, guide or other supplier."""
    KIND = 'vendors'

    id: str
    name: str = ''
    type: str = 'other'
    contact: str = ''
    email: str = ''
    phone: str = ''
    location: str = ''
    notes: str = ''

    def validate(self):
        ensure(validate_choice(self.type, VENDOR_TYPES), 'type')

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'type': self.type,
            'contact': self.contact,
            'email': self.email,
            'phone': self.phone,
            'location': self.location,
            'notes': self.notes,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Vendor':
        return cls(
            id=data['id'],
            name=data.get('name', ''),
            type=data.get('type', 'other'),
            contact=data.get('contact', ''),
            email=data.get('email', ''),
            phone=data.get('phone', ''),
            location=data.get('location', ''),
            notes=data.get('notes', ''),
        )


@dataclass(frozen=True)
class RoomAllocation:
    id: str
    room_id: str
    booking_id: Optional[str] = None
    guest_name: str = ''
    check_in: Optional[datetime] = None
    check_out: Optional[datetime] = None

    def to_dict(self):
        return {
            'id': self.id,
            'roomId': self.room_id,
            'bookingId': self.booking_id,
            'guestName': self.guest_name,
            'checkIn': format_datetime(self.check_in),
            'checkOut': format_datetime(self.check_out),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RoomAllocation':
        return cls(
            id=data['id'],
            room_id=data.get('roomId', ''),
            booking_id=_optional_ref(data.get('bookingId')),
            guest_name=data.get('guestName', ''),
            check_in=parse_datetime(data.get('checkIn')),
            check_out=parse_datetime(data.get('checkOut')),
        )


@dataclass(frozen=True)
class HotelRoom:
    """A room at a hotel vendor, with its guest allocations embedded."""
    KIND = 'hotel_rooms'

    id: str
    vendor_id: Optional[str] = None
    room_number: str = ''
    type: str = ''
    allocations: Tuple[RoomAllocation, ...] = ()

    def validate(self):
        pass

    def to_dict(self):
        return {
            'id': self.id,
            'vendorId': self.vendor_id,
            'roomNumber': self.room_number,
            'type': self.type,
            'allocations': [a.to_dict() for a in self.allocations],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'HotelRoom':
        return cls(
            id=data['id'],
            vendor_id=_optional_ref(data.get('vendorId')),
            room_number=data.get('roomNumber', ''),
            type=data.get('type', ''),
            allocations=tuple(RoomAllocation.from_dict(a) for a in data.get('allocations') or []),
        )


# =============================================================================
# OPERATIONS - TASKS
# =============================================================================

@dataclass(frozen=True)
class Task:
    """Operations to-do item (visa, ticketing, briefing...)."""
    KIND = 'tasks'

    id: str
    title: str = ''
    description: str = ''
    assignee: str = ''
    status: str = 'todo'
    category: str = 'other'
    booking_id: Optional[str] = None
    due_date: Optional[datetime] = None
    created_at: Optional[datetime] = None

    def validate(self):
        ensure(validate_choice(self.status, TASK_STATUSES), 'status')
        ensure(validate_choice(self.category, TASK_CATEGORIES), 'category')

    def to_dict(self):
        return {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'assignee': self.assignee,
            'status': self.status,
            'category': self.category,
            'bookingId': self.booking_id,
            'dueDate': format_datetime(self.due_date),
            'createdAt': format_datetime(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Task':
        return cls(
            id=data['id'],
            title=data.get('title', ''),
            description=data.get('description', ''),
            assignee=data.get('assignee', ''),
            status=data.get('status', 'todo'),
            category=data.get('category', 'other'),
            booking_id=_optional_ref(data.get('bookingId')),
            due_date=parse_datetime(data.get('dueDate')),
            created_at=parse_datetime(data.get('createdAt')),
        )


# =============================================================================
# ITINERARIES
# =============================================================================

@dataclass(frozen=True)
class ItineraryActivity:
    id: str
    time: str = '09:00'
    title: str = ''
    description: str = ''
    location: str = ''
    type: str = 'activity'

    def validate(self):
        ensure(validate_time_of_day(self.time), 'time')
        ensure(validate_choice(self.type, ACTIVITY_TYPES), 'type')

    def to_dict(self):
        return {
            'id': self.id,
            'time': self.time,
            'title': self.title,
            'description': self.description,
            'location': self.location,
            'type': self.type,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ItineraryActivity':
        return cls(
            id=data['id'],
            time=data.get('time', '09:00'),
            title=data.get('title', ''),
            description=data.get('description', ''),
            location=data.get('location', ''),
            type=data.get('type', 'activity'),
        )


@dataclass(frozen=True)
class ItineraryDay:
    id: str
    day_number: int = 1
    date: Optional[date] = None
    activities: Tuple[ItineraryActivity, ...] = ()

    def to_dict(self):
        return {
            'id': self.id,
            'dayNumber': self.day_number,
            'date': parse_date(self.date).isoformat() if self.date else '',
            'activities': [a.to_dict() for a in self.activities],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ItineraryDay':
        return cls(
            id=data['id'],
            day_number=int(data.get('dayNumber', 1)),
            date=parse_date(data.get('date')),
            activities=tuple(ItineraryActivity.from_dict(a) for a in data.get('activities') or []),
        )


@dataclass(frozen=True)
class Itinerary:
    """Day-by-day trip plan, edited as one document."""
    KIND = 'itineraries'

    id: str
    booking_id: Optional[str] = None
    title: str = ''
    destination: str = ''
    days: Tuple[ItineraryDay, ...] = ()
    created_at: Optional[datetime] = None

    def validate(self):
        numbers = [d.day_number for d in self.days]
        if numbers != list(range(1, len(numbers) + 1)):
            ensure((False, f"day numbers must run 1..{len(numbers)}, got {numbers}"), 'days')
        for day in self.days:
            for activity in day.activities:
                activity.validate()

    def to_dict(self):
        return {
            'id': self.id,
            'bookingId': self.booking_id,
            'title': self.title,
            'destination': self.destination,
            'days': [d.to_dict() for d in self.days],
            'createdAt': format_datetime(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Itinerary':
        return cls(
            id=data['id'],
            booking_id=_optional_ref(data.get('bookingId')),
            title=data.get('title', ''),
            destination=data.get('destination', ''),
            days=tuple(ItineraryDay.from_dict(d) for d in data.get('days') or []),
            created_at=parse_datetime(data.get('createdAt')),
        )


# =============================================================================
# PRICING WORKSHEETS
# =============================================================================

@dataclass(frozen=True)
class CostItem:
    id: str
    category: str = ''
    description: str = ''
    unit_cost: Decimal = ZERO
    quantity: int = 1

    @property
    def line_total(self) -> Decimal:
        return self.unit_cost * self.quantity

    def validate(self):
        ensure(validate_non_negative(self.unit_cost), 'unit_cost')
        ensure(validate_non_negative(self.quantity), 'quantity')

    def to_dict(self):
        return {
            'id': self.id,
            'category': self.category,
            'description': self.description,
            'unitCost': decimal_to_json(self.unit_cost),
            'quantity': self.quantity,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CostItem':
        return cls(
            id=data['id'],
            category=data.get('category', ''),
            description=data.get('description', ''),
            unit_cost=to_decimal(data.get('unitCost')),
            quantity=int(data.get('quantity', 1)),
        )


@dataclass(frozen=True)
class PricingWorksheet:
    """Standalone cost/markup calculation for a prospective trip."""
    KIND = 'pricing_worksheets'

    id: str
    trip_name: str = ''
    destination: str = ''
    pax: int = 1
    cost_items: Tuple[CostItem, ...] = ()
    markup_percent: Decimal = ZERO
    notes: str = ''
    created_at: Optional[datetime] = None

    def validate(self):
        ensure(validate_non_negative(self.pax), 'pax')
        for item in self.cost_items:
            item.validate()

    def to_dict(self):
        return {
            'id': self.id,
            'tripName': self.trip_name,
            'destination': self.destination,
            'pax': self.pax,
            'costItems': [c.to_dict() for c in self.cost_items],
            'markupPercent': decimal_to_json(self.markup_percent),
            'notes': self.notes,
            'createdAt': format_datetime(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PricingWorksheet':
        return cls(
            id=data['id'],
            trip_name=data.get('tripName', ''),
            destination=data.get('destination', ''),
            pax=int(data.get('pax', 1)),
            cost_items=tuple(CostItem.from_dict(c) for c in data.get('costItems') or []),
            markup_percent=to_decimal(data.get('markupPercent')),
            notes=data.get('notes', ''),
            created_at=parse_datetime(data.get('createdAt')),
        )


# Entity kind registry, in load order
ENTITY_TYPES = {
    cls.KIND: cls
    for cls in (
        Client, Booking, Expense, Invoice, Vendor,
        HotelRoom, Task, Itinerary, PricingWorksheet, BudgetItem,
    )
}

# Kinds whose records carry a creation timestamp
TIMESTAMPED_KINDS = frozenset(
    kind for kind, cls in ENTITY_TYPES.items() if 'created_at' in cls.__dataclass_fields__
)


@dataclass(frozen=True)
class Snapshot:
    """Point-in-time view of every collection held by the store."""
    clients: Tuple[Client, ...] = ()
    bookings: Tuple[Booking, ...] = ()
    expenses: Tuple[Expense, ...] = ()
    invoices: Tuple[Invoice, ...] = ()
    vendors: Tuple[Vendor, ...] = ()
    hotel_rooms: Tuple[HotelRoom, ...] = ()
    tasks: Tuple[Task, ...] = ()
    itineraries: Tuple[Itinerary, ...] = ()
    pricing_worksheets: Tuple[PricingWorksheet, ...] = ()
    budget_items: Tuple[BudgetItem, ...] = ()
