import pytest

from registration.clients.errors import StoreUnavailableError
from registration.services.booking_store import BookingStore


@pytest.fixture()
def store(tmp_path) -> BookingStore:
    return BookingStore(str(tmp_path / "bookings.db"))


def test_slot_is_free_until_booked(store: BookingStore) -> None:
    assert not store.is_booked(date="03/14/2025", time_slot="9am-12pm EST/8am-11pm CST")

    booking = store.add(
        email="ada@example.com", date="03/14/2025", time_slot="9am-12pm EST/8am-11pm CST"
    )

    assert booking.email == "ada@example.com"
    assert store.is_booked(date="03/14/2025", time_slot="9am-12pm EST/8am-11pm CST")
    assert not store.is_booked(date="03/14/2025", time_slot="2pm-5pm EST/1pm-4pm CST")


def test_booked_dates_groups_distinct_slots(store: BookingStore) -> None:
    store.add(email="a@example.com", date="03/14/2025", time_slot="2pm-5pm EST/1pm-4pm CST")
    store.add(email="b@example.com", date="03/14/2025", time_slot="2pm-5pm EST/1pm-4pm CST")
    store.add(email="c@example.com", date="03/14/2025", time_slot="10am-1pm EST/9am-12pm CST")
    store.add(email="d@example.com", date="04/01/2025", time_slot="9am-12pm EST/8am-11pm CST")

    assert store.booked_dates() == {
        "03/14/2025": ["10am-1pm EST/9am-12pm CST", "2pm-5pm EST/1pm-4pm CST"],
        "04/01/2025": ["9am-12pm EST/8am-11pm CST"],
    }


def test_empty_store_has_no_booked_dates(store: BookingStore) -> None:
    assert store.booked_dates() == {}


def test_unwritable_location_is_reported(tmp_path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")

    with pytest.raises(StoreUnavailableError):
        BookingStore(str(blocker / "bookings.db"))
