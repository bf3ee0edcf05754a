"""
Tests for entity records and their storage form
"""
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from domain.entities import (
    Booking,
    HotelRoom,
    Invoice,
    Itinerary,
    PricingWorksheet,
    TIMESTAMPED_KINDS,
    ENTITY_TYPES,
    decimal_to_json,
    format_datetime,
    parse_datetime,
    to_decimal,
)
from validators import ValidationError


@pytest.mark.unit
class TestValueConversion:
    """Tests for date and money conversion helpers"""

    def test_parse_datetime_with_z_suffix_is_naive_utc(self):
        parsed = parse_datetime('2024-06-15T10:30:00.000Z')
        assert parsed == datetime(2024, 6, 15, 10, 30)
        assert parsed.tzinfo is None

    def test_parse_datetime_converts_offsets_to_utc(self):
        assert parse_datetime('2024-06-15T12:00:00+02:00') == datetime(2024, 6, 15, 10, 0)

    def test_blank_datetime_is_unset(self):
        assert parse_datetime('') is None
        assert parse_datetime(None) is None

    def test_format_datetime_appends_z(self):
        assert format_datetime(datetime(2024, 6, 15, 10, 30)) == '2024-06-15T10:30:00Z'

    def test_format_datetime_normalizes_aware_values(self):
        aware = datetime(2024, 6, 15, 12, 0, tzinfo=timezone(timedelta(hours=2)))
        assert format_datetime(aware) == '2024-06-15T10:00:00Z'

    def test_to_decimal_avoids_float_noise(self):
        assert to_decimal(0.1) == Decimal('0.1')
        assert to_decimal(None) == Decimal('0')

    def test_to_decimal_rejects_garbage(self):
        with pytest.raises(ValueError):
            to_decimal('lots')
        with pytest.raises(ValueError):
            to_decimal(True)

    def test_decimal_to_json_keeps_integers(self):
        assert decimal_to_json(Decimal('500.00')) == 500
        assert isinstance(decimal_to_json(Decimal('500.00')), int)
        assert decimal_to_json(Decimal('12.5')) == 12.5

    def test_decimal_to_json_never_rounds(self):
        """Test that amounts finer than a float survive the stored form exactly"""
        fine = Decimal('1234567890.123456789')
        assert decimal_to_json(fine) == '1234567890.123456789'
        assert to_decimal(decimal_to_json(fine)) == fine
        assert to_decimal(decimal_to_json(Decimal('99.95'))) == Decimal('99.95')


@pytest.mark.unit
class TestBookingRecord:
    """Tests for booking serialization"""

    def test_to_dict_uses_stored_key_names(self):
        booking = Booking(
            id='b1',
            client_id='c1',
            trip_name='Silk Road',
            start_date=datetime(2024, 7, 1),
            total_amount=Decimal('1500'),
        )
        data = booking.to_dict()
        assert data['clientId'] == 'c1'
        assert data['tripName'] == 'Silk Road'
        assert data['startDate'] == '2024-07-01T00:00:00Z'
        assert data['totalAmount'] == 1500
        assert data['paidAmount'] == 0

    def test_from_dict_restores_record(self):
        booking = Booking(id='b1', client_id='c1', pax=3, status='confirmed',
                          total_amount=Decimal('99.95'), created_at=datetime(2024, 1, 2, 3, 4, 5))
        assert Booking.from_dict(booking.to_dict()) == booking

    def test_empty_client_reference_reads_as_none(self):
        booking = Booking.from_dict({'id': 'b1', 'clientId': ''})
        assert booking.client_id is None

    def test_balance_due(self):
        booking = Booking(id='b1', total_amount=Decimal('1000'), paid_amount=Decimal('400'))
        assert booking.balance_due == Decimal('600')

    def test_invalid_status_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            Booking(id='b1', status='archived').validate()
        assert exc_info.value.field == 'status'

    def test_negative_amount_rejected(self):
        with pytest.raises(ValidationError):
            Booking(id='b1', total_amount=Decimal('-5')).validate()


@pytest.mark.unit
class TestInvoiceRecord:
    """Tests for invoice status handling"""

    def test_legacy_overdue_status_reads_as_unpaid(self):
        invoice = Invoice.from_dict({'id': 'i1', 'amount': 200, 'status': 'overdue'})
        assert invoice.status == 'unpaid'

    def test_overdue_cannot_be_stored(self):
        with pytest.raises(ValidationError):
            Invoice(id='i1', status='overdue').validate()

    def test_display_number(self):
        invoice = Invoice(id='3f2a9c11-0000-0000-0000-000000000000')
        assert invoice.number == 'INV-3F2A9C'


@pytest.mark.unit
class TestEmbeddedDocuments:
    """Tests for documents that carry nested records"""

    def test_itinerary_round_trip_keeps_days_and_activities(self):
        data = {
            'id': 'it1',
            'bookingId': 'b1',
            'title': 'Kyoto',
            'days': [
                {'id': 'd1', 'dayNumber': 1, 'date': '2024-07-01', 'activities': [
                    {'id': 'a1', 'time': '08:00', 'title': 'Breakfast', 'type': 'meal'},
                ]},
                {'id': 'd2', 'dayNumber': 2, 'date': '', 'activities': []},
            ],
        }
        itinerary = Itinerary.from_dict(data)
        assert itinerary.days[0].date == date(2024, 7, 1)
        assert itinerary.days[0].activities[0].type == 'meal'
        assert itinerary.days[1].date is None
        assert Itinerary.from_dict(itinerary.to_dict()) == itinerary

    def test_itinerary_day_numbers_must_be_contiguous(self):
        itinerary = Itinerary.from_dict({
            'id': 'it1',
            'days': [{'id': 'd1', 'dayNumber': 1}, {'id': 'd3', 'dayNumber': 3}],
        })
        with pytest.raises(ValidationError):
            itinerary.validate()

    def test_activity_time_validated(self):
        itinerary = Itinerary.from_dict({
            'id': 'it1',
            'days': [{'id': 'd1', 'dayNumber': 1, 'activities': [{'id': 'a1', 'time': '7am'}]}],
        })
        with pytest.raises(ValidationError):
            itinerary.validate()

    def test_hotel_room_allocations_round_trip(self):
        room = HotelRoom.from_dict({
            'id': 'r1',
            'vendorId': 'v1',
            'roomNumber': '101',
            'allocations': [{'id': 'al1', 'roomId': 'r1', 'guestName': 'Ana',
                             'checkIn': '2024-07-01T14:00:00Z'}],
        })
        assert room.allocations[0].check_in == datetime(2024, 7, 1, 14, 0)
        assert HotelRoom.from_dict(room.to_dict()) == room

    def test_worksheet_cost_items(self):
        worksheet = PricingWorksheet.from_dict({
            'id': 'p1', 'pax': 2, 'markupPercent': 20,
            'costItems': [{'id': 'c1', 'unitCost': 100, 'quantity': 2}],
        })
        assert worksheet.cost_items[0].line_total == Decimal('200')
        assert worksheet.markup_percent == Decimal('20')


@pytest.mark.unit
class TestRegistry:
    """Tests for the entity kind registry"""

    def test_all_kinds_registered(self):
        assert list(ENTITY_TYPES) == [
            'clients', 'bookings', 'expenses', 'invoices', 'vendors',
            'hotel_rooms', 'tasks', 'itineraries', 'pricing_worksheets', 'budget_items',
        ]

    def test_timestamped_kinds(self):
        assert 'bookings' in TIMESTAMPED_KINDS
        assert 'pricing_worksheets' in TIMESTAMPED_KINDS
        assert 'expenses' not in TIMESTAMPED_KINDS
        assert 'vendors' not in TIMESTAMPED_KINDS
