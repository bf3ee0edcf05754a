"""
Derived views over a store snapshot.

Every function here is pure: it reads records and returns new values, never
mutating or persisting anything. Date-based results (overdue, upcoming, this
month) depend on ``now`` and are recomputed on every call; pass ``now``
explicitly for deterministic results.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from domain.entities import (
    BOOKING_STATUSES,
    ZERO,
    Booking,
    BudgetItem,
    Client,
    Expense,
    HotelRoom,
    Invoice,
    Itinerary,
    ItineraryActivity,
    ItineraryDay,
    PricingWorksheet,
    Snapshot,
    Task,
    TASK_STATUSES,
    utcnow,
)

UNKNOWN_CLIENT = 'Unknown'
HUNDRED = Decimal('100')


def _sum(values: Iterable[Decimal]) -> Decimal:
    return sum(values, ZERO)


def _created_key(record):
    return record.created_at or datetime.min


# =============================================================================
# DATE PREDICATES
# =============================================================================

def is_past(value: Optional[datetime], now: datetime = None) -> bool:
    if value is None:
        return False
    return value < (now or utcnow())


def is_today(value: Optional[datetime], now: datetime = None) -> bool:
    if value is None:
        return False
    return value.date() == (now or utcnow()).date()


def days_from_now(value: Optional[datetime], now: datetime = None) -> Optional[int]:
    """Whole calendar days from today until ``value`` (negative if past)."""
    if value is None:
        return None
    return (value.date() - (now or utcnow()).date()).days


def month_range(now: datetime = None) -> Tuple[datetime, datetime]:
    """First and last instant of the calendar month containing ``now``."""
    now = now or utcnow()
    start = datetime(now.year, now.month, 1)
    if now.month == 12:
        next_start = datetime(now.year + 1, 1, 1)
    else:
        next_start = datetime(now.year, now.month + 1, 1)
    return start, next_start - timedelta(microseconds=1)


# =============================================================================
# OVERDUE DETECTION
# =============================================================================

def is_invoice_overdue(invoice: Invoice, now: datetime = None) -> bool:
    """Unpaid and past its due date."""
    return invoice.status == 'unpaid' and is_past(invoice.due_date, now)


def is_task_overdue(task: Task, now: datetime = None) -> bool:
    """Not done and past its due date."""
    return task.status != 'done' and is_past(task.due_date, now)


def invoice_display_status(invoice: Invoice, now: datetime = None) -> str:
    """paid, unpaid or overdue."""
    if is_invoice_overdue(invoice, now):
        return 'overdue'
    return invoice.status


def overdue_invoices(invoices: Iterable[Invoice], now: datetime = None) -> List[Invoice]:
    now = now or utcnow()
    return [i for i in invoices if is_invoice_overdue(i, now)]


def overdue_tasks(tasks: Iterable[Task], now: datetime = None) -> List[Task]:
    now = now or utcnow()
    return [t for t in tasks if is_task_overdue(t, now)]


def pending_invoices(invoices: Iterable[Invoice]) -> List[Invoice]:
    """Invoices still awaiting payment, overdue or not."""
    return [i for i in invoices if i.status == 'unpaid']


@dataclass(frozen=True)
class Alert:
    type: str  # invoice | task
    id: str
    label: str
    due_date: datetime


def urgent_alerts(invoices: Iterable[Invoice], tasks: Iterable[Task],
                  now: datetime = None, limit: int = 5) -> List[Alert]:
    """Overdue invoices and tasks, most overdue first."""
    now = now or utcnow()
    alerts = [
        Alert('invoice', i.id, f"Invoice #{i.id[:6]} overdue", i.due_date)
        for i in overdue_invoices(invoices, now)
    ]
    alerts += [
        Alert('task', t.id, f"{t.title} overdue", t.due_date)
        for t in overdue_tasks(tasks, now)
    ]
    alerts.sort(key=lambda a: a.due_date)
    return alerts[:limit]


# =============================================================================
# REVENUE & TRIPS
# =============================================================================

def monthly_revenue(invoices: Iterable[Invoice], now: datetime = None) -> Decimal:
    """Sum of paid invoices created within the current calendar month."""
    start, end = month_range(now)
    return _sum(
        i.amount for i in invoices
        if i.status == 'paid' and i.created_at is not None and start <= i.created_at <= end
    )


def active_bookings(bookings: Iterable[Booking]) -> List[Booking]:
    return [b for b in bookings if b.status != 'cancelled']


def trips_today(bookings: Iterable[Booking], now: datetime = None) -> List[Booking]:
    now = now or utcnow()
    return [b for b in active_bookings(bookings) if is_today(b.start_date, now)]


def upcoming_trips(bookings: Iterable[Booking], now: datetime = None,
                   window_days: int = 7, limit: int = 5) -> List[Booking]:
    """Active bookings starting within ``window_days``, soonest first."""
    now = now or utcnow()
    upcoming = []
    for booking in active_bookings(bookings):
        days = days_from_now(booking.start_date, now)
        if days is not None and 0 <= days <= window_days:
            upcoming.append(booking)
    upcoming.sort(key=lambda b: b.start_date)
    return upcoming[:limit]


# =============================================================================
# BUDGET VARIANCE
# =============================================================================

@dataclass(frozen=True)
class BudgetVariance:
    booking: Booking
    total_budget: Decimal
    total_actual: Decimal

    @property
    def budget_used_percent(self) -> Decimal:
        if self.total_budget == 0:
            return ZERO
        return self.total_actual / self.total_budget * HUNDRED

    @property
    def over_budget(self) -> bool:
        return self.budget_used_percent > HUNDRED

    @property
    def remaining(self) -> Decimal:
        return self.total_budget - self.total_actual


def budget_variance(booking: Booking, budget_items: Iterable[BudgetItem],
                    expenses: Iterable[Expense]) -> BudgetVariance:
    return BudgetVariance(
        booking=booking,
        total_budget=_sum(b.budget_amount for b in budget_items if b.booking_id == booking.id),
        total_actual=_sum(e.amount for e in expenses if e.booking_id == booking.id),
    )


def budget_overview(bookings: Iterable[Booking], budget_items: Sequence[BudgetItem],
                    expenses: Sequence[Expense]) -> List[BudgetVariance]:
    """Budget variance for every non-cancelled booking."""
    return [budget_variance(b, budget_items, expenses) for b in active_bookings(bookings)]


# =============================================================================
# PRICING
# =============================================================================

@dataclass(frozen=True)
class PricingSummary:
    total_cost: Decimal
    cost_per_pax: Decimal
    price_per_pax: Decimal
    total_revenue: Decimal
    profit: Decimal
    margin: Decimal


def pricing_summary(worksheet: PricingWorksheet) -> PricingSummary:
    total_cost = _sum(c.unit_cost * c.quantity for c in worksheet.cost_items)
    cost_per_pax = total_cost / worksheet.pax if worksheet.pax > 0 else ZERO
    price_per_pax = cost_per_pax * (1 + worksheet.markup_percent / HUNDRED)
    total_revenue = price_per_pax * worksheet.pax
    profit = total_revenue - total_cost
    margin = profit / total_revenue * HUNDRED if total_revenue > 0 else ZERO
    return PricingSummary(
        total_cost=total_cost,
        cost_per_pax=cost_per_pax,
        price_per_pax=price_per_pax,
        total_revenue=total_revenue,
        profit=profit,
        margin=margin,
    )


# =============================================================================
# LOOKUPS, SEARCH & LISTINGS
# =============================================================================

def client_name(clients: Iterable[Client], client_id: Optional[str]) -> str:
    """Resolve a client id to a name; dangling references read as Unknown."""
    if client_id:
        for client in clients:
            if client.id == client_id:
                return client.name
    return UNKNOWN_CLIENT


def search_bookings(bookings: Iterable[Booking], clients: Iterable[Client],
                    query: str = '', status: str = None) -> List[Booking]:
    """
    Filter bookings by status ('all' or None for every status) and a
    case-insensitive search term.

    The term matches trip name, destination or the client's name. Results are
    newest first.
    """
    results = list(bookings)
    if status and status != 'all':
        results = [b for b in results if b.status == status]

    query = (query or '').strip().lower()
    if query:
        names = {c.id: c.name.lower() for c in clients}
        results = [
            b for b in results
            if query in b.trip_name.lower()
            or query in b.destination.lower()
            or query in names.get(b.client_id, '')
        ]

    results.sort(key=_created_key, reverse=True)
    return results


def search_clients(clients: Iterable[Client], query: str = '') -> List[Client]:
    query = (query or '').strip().lower()
    if not query:
        return list(clients)
    return [
        c for c in clients
        if query in c.name.lower() or query in c.email.lower() or query in c.phone.lower()
    ]


def booking_status_counts(bookings: Iterable[Booking]) -> Dict[str, int]:
    bookings = list(bookings)
    counts = {'all': len(bookings)}
    for status in BOOKING_STATUSES:
        counts[status] = len([b for b in bookings if b.status == status])
    return counts


def newest_first(records: Iterable) -> list:
    """Sort timestamped records by creation time, newest first."""
    return sorted(records, key=_created_key, reverse=True)


def recent_expenses(expenses: Sequence[Expense], limit: int = 5) -> List[Expense]:
    """The most recently recorded expenses, latest first."""
    return list(reversed(list(expenses)[-limit:])) if limit > 0 else []


def task_board(tasks: Iterable[Task], status: str) -> List[Task]:
    """One kanban column, earliest due first (undated tasks last)."""
    column = [t for t in tasks if t.status == status]
    column.sort(key=lambda t: (t.due_date is None, t.due_date or datetime.min))
    return column


def task_column_counts(tasks: Iterable[Task]) -> Dict[str, int]:
    tasks = list(tasks)
    return {status: len([t for t in tasks if t.status == status]) for status in TASK_STATUSES}


def room_occupancy(room: HotelRoom) -> str:
    return 'occupied' if room.allocations else 'available'


def rooms_for_vendor(rooms: Iterable[HotelRoom], vendor_id: str) -> List[HotelRoom]:
    return [r for r in rooms if r.vendor_id == vendor_id]


def sorted_activities(day: ItineraryDay) -> List[ItineraryActivity]:
    return sorted(day.activities, key=lambda a: a.time)


def activity_count(itinerary: Itinerary) -> int:
    return sum(len(d.activities) for d in itinerary.days)


# =============================================================================
# AGGREGATE VIEWS
# =============================================================================

def booking_detail(booking: Booking, snapshot: Snapshot) -> Dict:
    """A booking with its related records and money totals."""
    trip_expenses = [e for e in snapshot.expenses if e.booking_id == booking.id]
    trip_invoices = [i for i in snapshot.invoices if i.booking_id == booking.id]
    trip_tasks = [t for t in snapshot.tasks if t.booking_id == booking.id]
    return {
        'booking': booking,
        'client_name': client_name(snapshot.clients, booking.client_id),
        'expenses': trip_expenses,
        'invoices': trip_invoices,
        'tasks': trip_tasks,
        'total_expenses': _sum(e.amount for e in trip_expenses),
        'balance_due': booking.balance_due,
    }


def finance_summary(snapshot: Snapshot, now: datetime = None) -> Dict:
    now = now or utcnow()
    overdue = overdue_invoices(snapshot.invoices, now)
    total_revenue = _sum(i.amount for i in snapshot.invoices if i.status == 'paid')
    total_expenses = _sum(e.amount for e in snapshot.expenses)
    return {
        'total_revenue': total_revenue,
        'total_expenses': total_expenses,
        'net': total_revenue - total_expenses,
        'total_pending': _sum(i.amount for i in pending_invoices(snapshot.invoices)),
        'overdue_count': len(overdue),
        'overdue_total': _sum(i.amount for i in overdue),
    }


def dashboard(snapshot: Snapshot, now: datetime = None,
              window_days: int = 7, limit: int = 5) -> Dict:
    """Everything the home screen shows, computed in one pass."""
    now = now or utcnow()
    return {
        'trips_today': trips_today(snapshot.bookings, now),
        'pending_invoices': len(pending_invoices(snapshot.invoices)),
        'overdue_invoices': len(overdue_invoices(snapshot.invoices, now)),
        'monthly_revenue': monthly_revenue(snapshot.invoices, now),
        'upcoming_trips': upcoming_trips(snapshot.bookings, now, window_days, limit),
        'urgent_alerts': urgent_alerts(snapshot.invoices, snapshot.tasks, now, limit),
        'stats': {
            'confirmed_bookings': len([b for b in snapshot.bookings if b.status == 'confirmed']),
            'open_tasks': len([t for t in snapshot.tasks if t.status != 'done']),
            'total_expenses': _sum(e.amount for e in snapshot.expenses),
        },
    }


# =============================================================================
# DATA INTEGRITY
# =============================================================================

def check_data_integrity(snapshot: Snapshot) -> Dict:
    """
    Report dangling references and duplicate ids.

    Deletes never cascade, so orphans are expected; this is a read-only report
    and nothing is repaired.
    """
    issues = []

    ids = {
        'clients': {c.id for c in snapshot.clients},
        'bookings': {b.id for b in snapshot.bookings},
        'vendors': {v.id for v in snapshot.vendors},
    }

    references = [
        ('bookings', snapshot.bookings, 'client_id', 'clients'),
        ('expenses', snapshot.expenses, 'booking_id', 'bookings'),
        ('invoices', snapshot.invoices, 'booking_id', 'bookings'),
        ('invoices', snapshot.invoices, 'client_id', 'clients'),
        ('tasks', snapshot.tasks, 'booking_id', 'bookings'),
        ('itineraries', snapshot.itineraries, 'booking_id', 'bookings'),
        ('budget_items', snapshot.budget_items, 'booking_id', 'bookings'),
        ('hotel_rooms', snapshot.hotel_rooms, 'vendor_id', 'vendors'),
    ]
    for entity, records, field, target in references:
        for record in records:
            value = getattr(record, field)
            if value and value not in ids[target]:
                issues.append({
                    'type': 'orphan_reference',
                    'entity': entity,
                    'id': record.id,
                    'field': field,
                    'value': value,
                })

    for room in snapshot.hotel_rooms:
        for allocation in room.allocations:
            if allocation.booking_id and allocation.booking_id not in ids['bookings']:
                issues.append({
                    'type': 'orphan_reference',
                    'entity': 'room_allocations',
                    'id': allocation.id,
                    'field': 'booking_id',
                    'value': allocation.booking_id,
                })

    counts = {}
    for name in Snapshot.__dataclass_fields__:
        items = getattr(snapshot, name)
        counts[name] = len(items)
        seen = set()
        duplicates = set()
        for item in items:
            if item.id in seen:
                duplicates.add(item.id)
            seen.add(item.id)
        if duplicates:
            issues.append({
                'type': 'duplicate_id',
                'entity': name,
                'ids': sorted(duplicates),
            })

    return {
        'healthy': len(issues) == 0,
        'issues': issues,
        'counts': counts,
    }
