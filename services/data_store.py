"""
TourOps Data Store - the single coordinating access layer for all entity data.

Holds the authoritative in-memory snapshot of every collection, mediates all
create/update/delete operations, assigns ids and creation timestamps, keeps
related records consistent, and persists each affected collection in full
after every mutation.

Guarantees:
- A collection is persisted before the new version becomes visible in memory,
  so memory never runs ahead of storage. A failed write leaves both untouched.
- Mutations against the same entity kind are serialized (see
  ``serialize_mutations``); operations spanning kinds take their locks in a
  fixed order.
- Marking an invoice paid adds its amount to the booking's paid amount and
  marking it unpaid takes it back off, as one operation.
"""

import asyncio
import logging
from contextlib import AsyncExitStack, asynccontextmanager
from dataclasses import replace
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Callable, Dict, List, Optional, Tuple

from domain import derivations, documents
from domain.entities import (
    ENTITY_TYPES,
    TASK_STATUSES,
    TIMESTAMPED_KINDS,
    ZERO,
    Booking,
    Invoice,
    Snapshot,
    Task,
    generate_uuid,
    utcnow,
)
from domain.errors import NotFoundError, StorageError, StoreNotLoadedError
from services.event_logger import EventLogger
from services.repositories import Repository
from validators import ValidationError

logger = logging.getLogger(__name__)

KIND_ORDER = tuple(ENTITY_TYPES)


class DataStore:
    """Aggregate coordinator over the ten entity repositories."""

    def __init__(self, repositories: Dict[str, Repository],
                 event_logger: EventLogger = None,
                 serialize_mutations: bool = True,
                 enforce_task_adjacency: bool = False,
                 invoice_due_days: int = 14,
                 upcoming_trip_days: int = 7,
                 dashboard_limit: int = 5,
                 clock: Callable[[], datetime] = utcnow):
        missing = [kind for kind in KIND_ORDER if kind not in repositories]
        if missing:
            raise ValueError(f"Missing repositories for: {', '.join(missing)}")

        self._repositories = repositories
        self._collections: Dict[str, Tuple] = {kind: () for kind in KIND_ORDER}
        self._locks = {kind: asyncio.Lock() for kind in KIND_ORDER}
        self._loaded = False
        self._loading = False

        self.events = event_logger or EventLogger()
        self.serialize_mutations = serialize_mutations
        self.enforce_task_adjacency = enforce_task_adjacency
        self.invoice_due_days = invoice_due_days
        self.upcoming_trip_days = upcoming_trip_days
        self.dashboard_limit = dashboard_limit
        self.clock = clock

    # ==================== STATE ====================

    @property
    def is_loading(self) -> bool:
        """True until the first reload completes, and while any reload runs."""
        return self._loading or not self._loaded

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    @property
    def clients(self):
        return self._collections['clients']

    @property
    def bookings(self):
        return self._collections['bookings']

    @property
    def expenses(self):
        return self._collections['expenses']

    @property
    def invoices(self):
        return self._collections['invoices']

    @property
    def vendors(self):
        return self._collections['vendors']

    @property
    def hotel_rooms(self):
        return self._collections['hotel_rooms']

    @property
    def tasks(self):
        return self._collections['tasks']

    @property
    def itineraries(self):
        return self._collections['itineraries']

    @property
    def pricing_worksheets(self):
        return self._collections['pricing_worksheets']

    @property
    def budget_items(self):
        return self._collections['budget_items']

    def snapshot(self) -> Snapshot:
        return Snapshot(**self._collections)

    def get_all(self, kind: str) -> Tuple:
        self._entity_type(kind)
        return self._collections[kind]

    def get(self, kind: str, entity_id: str):
        """Return the record with ``entity_id`` or None."""
        for record in self.get_all(kind):
            if record.id == entity_id:
                return record
        return None

    def require(self, kind: str, entity_id: str):
        record = self.get(kind, entity_id)
        if record is None:
            raise NotFoundError(kind, entity_id)
        return record

    def subscribe(self, callback):
        """Register a change callback; returns an unsubscribe function."""
        return self.events.subscribe(callback)

    # ==================== INTERNALS ====================

    def _entity_type(self, kind: str):
        try:
            return ENTITY_TYPES[kind]
        except KeyError:
            raise ValueError(f"Unknown entity kind: {kind}")

    def _kind_of(self, record) -> str:
        kind = getattr(type(record), 'KIND', None)
        if kind not in ENTITY_TYPES or ENTITY_TYPES[kind] is not type(record):
            raise TypeError(f"Not a storable entity: {type(record).__name__}")
        return kind

    def _require_loaded(self):
        if not self._loaded:
            raise StoreNotLoadedError("Store has not been loaded; call reload() first")

    @asynccontextmanager
    async def _locking(self, *kinds):
        """Hold the mutation locks of ``kinds``, always acquired in KIND_ORDER."""
        if not self.serialize_mutations:
            yield
            return
        async with AsyncExitStack() as stack:
            for kind in sorted(set(kinds), key=KIND_ORDER.index):
                await stack.enter_async_context(self._locks[kind])
            yield

    def _prepare(self, record):
        """Normalize a record through its storage form and validate it."""
        try:
            normalized = type(record).from_dict(record.to_dict())
        except (ValueError, TypeError, KeyError, AttributeError) as e:
            raise ValidationError(f"Invalid {type(record).__name__}: {e}")
        normalized.validate()
        return normalized

    async def _commit(self, kind: str, items) -> None:
        """Persist ``items`` as the full collection, then publish them in memory."""
        items = tuple(items)
        try:
            await self._repositories[kind].save(items)
        except StorageError:
            logger.error(f"Persisting {kind} failed; in-memory {kind} left unchanged")
            raise
        self._collections[kind] = items

    @staticmethod
    def _index_of(items, entity_id) -> Optional[int]:
        for idx, item in enumerate(items):
            if item.id == entity_id:
                return idx
        return None

    # ==================== LOADING ====================

    async def reload(self) -> None:
        """
        Load every collection from storage concurrently and swap them all in at once.

        If any collection fails to load the previous snapshot is kept and the
        StorageReadError propagates.
        """
        async with self._locking(*KIND_ORDER):
            self._loading = True
            try:
                results = await asyncio.gather(
                    *(self._repositories[kind].get_all() for kind in KIND_ORDER)
                )
            finally:
                self._loading = False
            self._collections = {
                kind: tuple(items) for kind, items in zip(KIND_ORDER, results)
            }
            self._loaded = True

        counts = {kind: len(items) for kind, items in self._collections.items()}
        logger.info(f"Data store loaded: {counts}")
        self.events.log('all', 'RELOADED', metadata={'counts': counts})

    # ==================== GENERIC CRUD ====================

    async def add(self, kind: str, **fields):
        """
        Create a record of ``kind`` from ``fields``.

        The store assigns the id (and ``created_at`` for timestamped kinds);
        the returned record's id is valid immediately.
        """
        entity_type = self._entity_type(kind)
        for reserved in ('id', 'created_at'):
            if reserved in fields:
                raise ValidationError(f"{reserved} is assigned by the store", field=reserved)
        self._require_loaded()

        async with self._locking(kind):
            items = self._collections[kind]
            existing_ids = {item.id for item in items}
            new_id = generate_uuid()
            while new_id in existing_ids:
                new_id = generate_uuid()

            values = dict(fields, id=new_id)
            if kind in TIMESTAMPED_KINDS:
                values['created_at'] = self.clock()
            try:
                record = entity_type(**values)
            except TypeError as e:
                raise ValidationError(f"Invalid {entity_type.__name__} fields: {e}")
            record = self._prepare(record)

            await self._commit(kind, items + (record,))

        logger.info(f"Created {kind} {record.id}")
        self.events.log_create(kind, record.id)
        return record

    async def update(self, record):
        """
        Replace the stored record that has the same id.

        Order and all other records are preserved; ``created_at`` keeps its
        original value. Raises NotFoundError for an unknown id.
        """
        kind = self._kind_of(record)
        self._require_loaded()
        record = self._prepare(record)

        if kind == 'invoices':
            async with self._locking('invoices', 'bookings'):
                return await self._update_invoice_locked(record)

        async with self._locking(kind):
            previous, record = await self._update_locked(kind, record)

        self._log_update(kind, previous, record)
        return record

    async def remove(self, kind: str, entity_id: str) -> bool:
        """
        Delete a record. Related records are left pointing at it.

        Returns False (and writes nothing) when no such record exists.
        """
        self._entity_type(kind)
        self._require_loaded()

        async with self._locking(kind):
            items = self._collections[kind]
            remaining = tuple(item for item in items if item.id != entity_id)
            if len(remaining) == len(items):
                logger.debug(f"Remove {kind} {entity_id}: not found, nothing to do")
                return False
            await self._commit(kind, remaining)

        logger.info(f"Deleted {kind} {entity_id}")
        self.events.log_delete(kind, entity_id)
        return True

    async def _update_locked(self, kind, record):
        items = self._collections[kind]
        idx = self._index_of(items, record.id)
        if idx is None:
            raise NotFoundError(kind, record.id)
        previous = items[idx]
        if kind in TIMESTAMPED_KINDS:
            record = replace(record, created_at=previous.created_at)
        await self._commit(kind, items[:idx] + (record,) + items[idx + 1:])
        return previous, record

    def _log_update(self, kind, previous, record):
        old_status = getattr(previous, 'status', None)
        new_status = getattr(record, 'status', None)
        if old_status != new_status:
            logger.info(f"{kind} {record.id} status {old_status} -> {new_status}")
            self.events.log_status_change(kind, record.id, old_status, new_status)
        else:
            logger.info(f"Updated {kind} {record.id}")
            self.events.log_update(kind, record.id)

    # ==================== INVOICES & PAYMENTS ====================

    @staticmethod
    def _paid_contribution(invoice: Invoice) -> Dict[str, Decimal]:
        if invoice.status == 'paid' and invoice.booking_id:
            return {invoice.booking_id: invoice.amount}
        return {}

    def _payment_adjustments(self, previous: Invoice, record: Invoice) -> Dict[str, Decimal]:
        """Change in paid amount per booking caused by replacing ``previous`` with ``record``."""
        adjustments = {}
        for booking_id, amount in self._paid_contribution(previous).items():
            adjustments[booking_id] = adjustments.get(booking_id, ZERO) - amount
        for booking_id, amount in self._paid_contribution(record).items():
            adjustments[booking_id] = adjustments.get(booking_id, ZERO) + amount
        return {k: v for k, v in adjustments.items() if v != 0}

    async def _update_invoice_locked(self, record: Invoice) -> Invoice:
        invoices = self._collections['invoices']
        idx = self._index_of(invoices, record.id)
        if idx is None:
            raise NotFoundError('invoices', record.id)
        previous = invoices[idx]
        record = replace(record, created_at=previous.created_at)

        bookings = self._collections['bookings']
        new_bookings = list(bookings)
        touched = []
        for booking_id, delta in self._payment_adjustments(previous, record).items():
            b_idx = self._index_of(bookings, booking_id)
            if b_idx is None:
                logger.warning(f"Invoice {record.id} references missing booking {booking_id}; "
                               f"paid amount not adjusted")
                continue
            booking = bookings[b_idx]
            paid = booking.paid_amount + delta
            if paid < 0:
                paid = ZERO
            new_bookings[b_idx] = replace(booking, paid_amount=paid)
            touched.append(booking_id)

        await self._commit('invoices', invoices[:idx] + (record,) + invoices[idx + 1:])
        if touched:
            try:
                await self._commit('bookings', new_bookings)
            except StorageError:
                # Undo the invoice write so the pair stays consistent
                try:
                    await self._commit('invoices', invoices)
                except StorageError:
                    logger.error(f"Could not revert invoice {record.id} after booking write "
                                 f"failure; stored invoices and bookings disagree")
                raise

        self._log_update('invoices', previous, record)
        if previous.status != record.status:
            event_type = 'PAYMENT_RECEIVED' if record.status == 'paid' else 'PAYMENT_REVERSED'
            self.events.log('invoices', event_type, record.id,
                            metadata={'amount': str(record.amount), 'bookings': touched})
        for booking_id in touched:
            self.events.log_update('bookings', booking_id)
        return record

    async def mark_invoice_paid(self, invoice_id: str) -> Invoice:
        """Mark an invoice paid and credit its amount to the booking."""
        return await self._set_invoice_status(invoice_id, 'paid')

    async def mark_invoice_unpaid(self, invoice_id: str) -> Invoice:
        """Mark an invoice unpaid and take its amount back off the booking."""
        return await self._set_invoice_status(invoice_id, 'unpaid')

    async def _set_invoice_status(self, invoice_id: str, status: str) -> Invoice:
        self._require_loaded()
        async with self._locking('invoices', 'bookings'):
            invoice = self.require('invoices', invoice_id)
            if invoice.status == status:
                return invoice
            return await self._update_invoice_locked(replace(invoice, status=status))

    # ==================== BOOKINGS ====================

    async def create_booking(self, with_invoice: bool = True, **fields) -> Tuple[Booking, Optional[Invoice]]:
        """
        Create a booking and, when it has a total, its opening invoice.

        The invoice covers the full total, is unpaid, and falls due
        ``invoice_due_days`` after creation. If the invoice cannot be stored
        the booking is removed again.
        """
        booking = await self.add('bookings', **fields)
        if not with_invoice or booking.total_amount <= 0:
            return booking, None

        try:
            invoice = await self.add(
                'invoices',
                booking_id=booking.id,
                client_id=booking.client_id,
                amount=booking.total_amount,
                status='unpaid',
                due_date=self.clock() + timedelta(days=self.invoice_due_days),
            )
        except StorageError:
            logger.error(f"Opening invoice for booking {booking.id} failed; removing booking")
            await self.remove('bookings', booking.id)
            raise
        return booking, invoice

    # ==================== TASKS ====================

    async def move_task(self, task, new_status: str) -> Task:
        """Move a task to another board column."""
        task_id = task.id if isinstance(task, Task) else task
        if new_status not in TASK_STATUSES:
            raise ValidationError(f"Invalid task status: {new_status}", field='status')
        return await self._transition_task(task_id, lambda status: new_status)

    async def advance_task(self, task_id: str) -> Task:
        """todo -> in_progress -> done; done stays done."""
        return await self._transition_task(
            task_id,
            lambda status: TASK_STATUSES[min(TASK_STATUSES.index(status) + 1, len(TASK_STATUSES) - 1)],
        )

    async def revert_task(self, task_id: str) -> Task:
        """done -> in_progress -> todo; todo stays todo."""
        return await self._transition_task(
            task_id,
            lambda status: TASK_STATUSES[max(TASK_STATUSES.index(status) - 1, 0)],
        )

    async def _transition_task(self, task_id: str, target) -> Task:
        """Read, check and rewrite a task's status while holding the tasks lock."""
        self._require_loaded()
        async with self._locking('tasks'):
            current = self.require('tasks', task_id)
            new_status = target(current.status)
            if self.enforce_task_adjacency:
                step = abs(TASK_STATUSES.index(new_status) - TASK_STATUSES.index(current.status))
                if step > 1:
                    raise ValidationError(
                        f"Task can only move one column at a time ({current.status} -> {new_status})",
                        field='status',
                    )
            if current.status == new_status:
                return current
            previous, record = await self._update_locked('tasks', replace(current, status=new_status))
        self._log_update('tasks', previous, record)
        return record

    # ==================== EMBEDDED DOCUMENTS ====================

    async def _edit_document(self, kind: str, entity_id: str, edit, *args, **kwargs):
        """Apply a copy-on-write edit to the current version of a document and save it."""
        self._require_loaded()
        async with self._locking(kind):
            current = self.require(kind, entity_id)
            record = self._prepare(edit(current, *args, **kwargs))
            previous, record = await self._update_locked(kind, record)
        self._log_update(kind, previous, record)
        return record

    async def add_itinerary_day(self, itinerary_id: str, date=None):
        return await self._edit_document('itineraries', itinerary_id,
                                         documents.add_itinerary_day, date)

    async def remove_itinerary_day(self, itinerary_id: str, day_id: str):
        return await self._edit_document('itineraries', itinerary_id,
                                         documents.remove_itinerary_day, day_id)

    async def add_activity(self, itinerary_id: str, day_id: str, **fields):
        return await self._edit_document('itineraries', itinerary_id,
                                         documents.add_activity, day_id, **fields)

    async def update_activity(self, itinerary_id: str, day_id: str, activity_id: str, **changes):
        return await self._edit_document('itineraries', itinerary_id,
                                         documents.update_activity, day_id, activity_id, **changes)

    async def remove_activity(self, itinerary_id: str, day_id: str, activity_id: str):
        return await self._edit_document('itineraries', itinerary_id,
                                         documents.remove_activity, day_id, activity_id)

    async def add_cost_item(self, worksheet_id: str, **fields):
        return await self._edit_document('pricing_worksheets', worksheet_id,
                                         documents.add_cost_item, **fields)

    async def update_cost_item(self, worksheet_id: str, item_id: str, **changes):
        return await self._edit_document('pricing_worksheets', worksheet_id,
                                         documents.update_cost_item, item_id, **changes)

    async def remove_cost_item(self, worksheet_id: str, item_id: str):
        return await self._edit_document('pricing_worksheets', worksheet_id,
                                         documents.remove_cost_item, item_id)

    async def allocate_room(self, room_id: str, booking_id: Optional[str], guest_name: str,
                            check_in=None, check_out=None):
        return await self._edit_document('hotel_rooms', room_id, documents.allocate_room,
                                         booking_id, guest_name, check_in, check_out)

    async def release_allocation(self, room_id: str, allocation_id: str):
        return await self._edit_document('hotel_rooms', room_id,
                                         documents.release_allocation, allocation_id)

    # ==================== DERIVED VIEWS ====================

    def dashboard(self, now: datetime = None) -> Dict:
        return derivations.dashboard(self.snapshot(), now or self.clock(),
                                     self.upcoming_trip_days, self.dashboard_limit)

    def finance_summary(self, now: datetime = None) -> Dict:
        return derivations.finance_summary(self.snapshot(), now or self.clock())

    def budget_overview(self) -> List[derivations.BudgetVariance]:
        return derivations.budget_overview(self.bookings, self.budget_items, self.expenses)

    def pricing_summary(self, worksheet_id: str) -> derivations.PricingSummary:
        return derivations.pricing_summary(self.require('pricing_worksheets', worksheet_id))

    def booking_detail(self, booking_id: str) -> Dict:
        return derivations.booking_detail(self.require('bookings', booking_id), self.snapshot())

    def search_bookings(self, query: str = '', status: str = None) -> List[Booking]:
        return derivations.search_bookings(self.bookings, self.clients, query, status)

    def client_name(self, client_id: Optional[str]) -> str:
        return derivations.client_name(self.clients, client_id)

    def check_data_integrity(self) -> Dict:
        return derivations.check_data_integrity(self.snapshot())
