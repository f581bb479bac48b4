"""
Periodic booking jobs.

* ``ReminderScanner`` — emails customers whose booking starts in the
  reminder window (roughly a day ahead).
* ``BookingHousekeeper`` — expires bookings left unpaid past the payment
  window, and marks finished bookings as completed.
"""

from __future__ import annotations

import logging

from app.config import SCHEDULER_INTERVAL
from app.services.background import BackgroundWorker
from app.services.booking_service import BookingService

logger = logging.getLogger(__name__)


class ReminderScanner(BackgroundWorker):
    def __init__(self, service: BookingService, *, interval: float = SCHEDULER_INTERVAL) -> None:
        super().__init__(interval=interval, name="reminder-scanner")
        self._service = service

    async def _tick(self) -> None:
        selected, sent = await self._service.send_due_reminders()
        if selected:
            logger.info("Reminder scan: %d due, %d sent", selected, sent)


class BookingHousekeeper(BackgroundWorker):
    def __init__(self, service: BookingService, *, interval: float = SCHEDULER_INTERVAL) -> None:
        super().__init__(interval=interval, name="booking-housekeeper", catch_up=True)
        self._service = service

    async def _tick(self) -> None:
        await self._service.expire_stale_bookings()
        await self._service.complete_past_bookings()
