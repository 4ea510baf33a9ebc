import logging
import os
from datetime import timedelta

from src.application.booking_service import BookingService
from src.infrastructure.calendar.holiday_provider import get_holiday_calendar, venue_today
from src.infrastructure.db.session import get_db_session

logger = logging.getLogger(__name__)

DEFAULT_MAX_AGE_MINUTES = 60


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    max_age = int(os.getenv("ORPHANED_BOOKING_MAX_AGE_MINUTES", str(DEFAULT_MAX_AGE_MINUTES)))

    with get_db_session() as db:
        service = BookingService(db, calendar=get_holiday_calendar(), today=venue_today())
        cancelled = service.cancel_orphaned_pending(older_than=timedelta(minutes=max_age))

    print(f"Cancelled {len(cancelled)} orphaned pending bookings older than {max_age} minutes.")


if __name__ == "__main__":
    main()
