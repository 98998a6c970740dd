"""SQLite-backed storage for booked class slots."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List

from registration.clients.errors import StoreUnavailableError


def _ensure_directory(db_path: Path) -> None:
    if db_path.parent and not db_path.parent.exists():
        db_path.parent.mkdir(parents=True, exist_ok=True)


@dataclass(slots=True)
class Booking:
    """One student booked into one class date and time slot."""

    email: str
    date: str
    time_slot: str
    created_at: datetime


class BookingStore:
    """Append-only booking log with slot lookups."""

    def __init__(self, db_path: str) -> None:
        self._db_path = Path(db_path)
        _ensure_directory(self._db_path)
        self._ensure_tables()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_tables(self) -> None:
        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS bookings (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        email TEXT NOT NULL,
                        date TEXT NOT NULL,
                        time_slot TEXT NOT NULL,
                        created_at TEXT NOT NULL
                    )
                    """
                )
                conn.execute(
                    "CREATE INDEX IF NOT EXISTS idx_bookings_slot ON bookings (date, time_slot)"
                )
        except sqlite3.Error as exc:
            raise StoreUnavailableError(
                f"Unable to initialise booking store at {self._db_path}."
            ) from exc

    def add(self, *, email: str, date: str, time_slot: str) -> Booking:
        """Record a booking; ``date`` is expected in MM/DD/YYYY form."""
        booking = Booking(
            email=email,
            date=date,
            time_slot=time_slot,
            created_at=datetime.now(timezone.utc),
        )
        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO bookings (email, date, time_slot, created_at)
                    VALUES (?, ?, ?, ?)
                    """,
                    (email, date, time_slot, booking.created_at.isoformat()),
                )
        except sqlite3.Error as exc:
            raise StoreUnavailableError("Failed to save booking.") from exc
        return booking

    def is_booked(self, *, date: str, time_slot: str) -> bool:
        try:
            with self._connect() as conn:
                row = conn.execute(
                    "SELECT 1 FROM bookings WHERE date = ? AND time_slot = ? LIMIT 1",
                    (date, time_slot),
                ).fetchone()
        except sqlite3.Error as exc:
            raise StoreUnavailableError("Failed to look up booking.") from exc
        return row is not None

    def booked_dates(self) -> Dict[str, List[str]]:
        """Map each booked date to its distinct time slots."""
        try:
            with self._connect() as conn:
                rows = conn.execute(
                    "SELECT DISTINCT date, time_slot FROM bookings ORDER BY date, time_slot"
                ).fetchall()
        except sqlite3.Error as exc:
            raise StoreUnavailableError("Failed to list bookings.") from exc

        by_date: Dict[str, List[str]] = {}
        for row in rows:
            by_date.setdefault(row["date"], []).append(row["time_slot"])
        return by_date


__all__ = ["Booking", "BookingStore"]
