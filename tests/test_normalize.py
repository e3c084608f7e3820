"""
Tests for record normalization.
"""
from datetime import date, datetime, timezone

import pandas as pd
import pytest

from night_audit.normalize import (
    is_blank,
    normalize_identifier,
    normalize_payments,
    normalize_postings,
    normalize_reservations,
    normalize_rooms,
    normalize_stays,
    to_local_timestamp,
)


class _FirestoreLikeTimestamp:
    def __init__(self, seconds, nanoseconds=0):
        self.seconds = seconds
        self.nanoseconds = nanoseconds


class TestToLocalTimestamp:
    def test_plain_iso_date_is_wall_clock(self):
        assert to_local_timestamp("2025-03-08", 7) == pd.Timestamp(2025, 3, 8)

    def test_aware_iso_string_is_shifted(self):
        assert to_local_timestamp("2025-03-08T20:00:00Z", 7) == pd.Timestamp(2025, 3, 9, 3, 0)

    def test_epoch_map(self):
        seconds = int(datetime(2025, 3, 8, 17, 0, tzinfo=timezone.utc).timestamp())
        assert to_local_timestamp({"seconds": seconds, "nanoseconds": 0}, 7) == pd.Timestamp(2025, 3, 9, 0, 0)

    def test_underscored_epoch_map(self):
        seconds = int(datetime(2025, 3, 8, 0, 0, tzinfo=timezone.utc).timestamp())
        assert to_local_timestamp({"_seconds": seconds, "_nanoseconds": 0}, 0) == pd.Timestamp(2025, 3, 8)

    def test_timestamp_object(self):
        seconds = int(datetime(2025, 3, 8, 0, 0, tzinfo=timezone.utc).timestamp())
        assert to_local_timestamp(_FirestoreLikeTimestamp(seconds), 7) == pd.Timestamp(2025, 3, 8, 7, 0)

    def test_date_and_naive_datetime(self):
        assert to_local_timestamp(date(2025, 3, 8), 7) == pd.Timestamp(2025, 3, 8)
        assert to_local_timestamp(datetime(2025, 3, 8, 9, 0), 7) == pd.Timestamp(2025, 3, 8, 9, 0)

    def test_year_9999_epoch_is_kept(self):
        end_of_time = _FirestoreLikeTimestamp(253402214400)
        assert to_local_timestamp(end_of_time, 7) == pd.Timestamp(datetime(9999, 12, 31, 7, 0))

    @pytest.mark.parametrize("value", [
        None, "", "   ", "not a date", float("nan"), 42,
        {"seconds": "n/a"},
        {"seconds": 10, "nanoseconds": "soon"},
        {"seconds": float("inf")},
        _FirestoreLikeTimestamp("n/a"),
    ])
    def test_blank_or_unparseable_is_none(self, value):
        assert to_local_timestamp(value, 7) is None


class TestIdentifiers:
    def test_numeric_and_text_keys_compare_equal(self):
        assert normalize_identifier(101) == "101"
        assert normalize_identifier(101.0) == "101"
        assert normalize_identifier(" 101 ") == "101"

    def test_blank_is_none(self):
        assert normalize_identifier(None) is None
        assert normalize_identifier("") is None
        assert normalize_identifier(float("nan")) is None

    def test_is_blank(self):
        assert is_blank(pd.NaT)
        assert not is_blank(0)
        assert not is_blank("x")


class TestNormalizeFrames:
    def test_empty_inputs_still_have_columns(self):
        rooms = normalize_rooms([])
        reservations = normalize_reservations([], 7)
        postings = normalize_postings([])

        assert len(rooms) == 0 and "status" in rooms.columns
        assert {"checkInDate", "checkOutDate", "roomNumbers"} <= set(reservations.columns)
        assert {"amount", "tax", "service"} <= set(postings.columns)

    def test_room_status_is_lower_cased(self):
        rooms = normalize_rooms([{"id": "r1", "roomNumber": 101, "status": "Occupied"}])
        assert rooms.loc[0, "status"] == "occupied"
        assert rooms.loc[0, "roomNumber"] == "101"

    def test_reservation_dates_and_channel(self):
        reservations = normalize_reservations([
            {"id": "a", "status": "Checked-In", "checkInDate": "2025-03-08", "channel": "OTA"},
            {"id": "b", "status": "booked", "checkInDate": "garbage"},
        ], 7)

        first, second = reservations.to_dict("records")
        assert first["status"] == "checked-in"
        assert first["channel"] == "ota"
        assert first["checkInDate"] == pd.Timestamp(2025, 3, 8)
        assert second["checkInDate"] is pd.NaT
        assert second["channel"] == ""
        assert is_blank(first["checkOutDate"])

    def test_legacy_room_number_is_promoted(self):
        reservations = normalize_reservations([
            {"id": "a", "roomNumbers": [101, "102"]},
            {"id": "b", "roomNumber": 205},
            {"id": "c"},
        ], 7)

        assert list(reservations["roomNumbers"]) == [("101", "102"), ("205",), ()]

    def test_stay_reservation_id_blank_is_none(self):
        stays = normalize_stays([
            {"id": "s1", "roomNumber": 101, "reservationId": None, "status": "OPEN"},
            {"id": "s2", "roomNumber": "102", "reservationId": "", "status": "open"},
        ])

        assert list(stays["status"]) == ["open", "open"]
        assert all(is_blank(v) for v in stays["reservationId"])

    def test_amounts_default_to_zero(self):
        postings = normalize_postings([
            {"id": "p1", "reservationId": "a", "amount": "100.5"},
            {"id": "p2", "reservationId": "a", "amount": None, "tax": "bad", "status": "VOID"},
        ])

        assert postings["amount"].tolist() == [100.5, 0.0]
        assert postings["tax"].tolist() == [0.0, 0.0]
        assert postings["status"].tolist() == ["posted", "void"]

    def test_payments(self):
        payments = normalize_payments([{"id": "x", "reservationId": 7, "amount": 50}])
        assert payments.loc[0, "reservationId"] == "7"
        assert payments.loc[0, "amount"] == 50.0
