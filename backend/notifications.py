"""Notification dispatch. Delivery channels are not implemented; reminders are logged."""
import logging

logger = logging.getLogger(__name__)


class NotificationService:
    def send_worry_time_notification(self, day_record_id: int, day: str, worry_time: str) -> None:
        logger.info(
            "Worry time notification triggered for day record %s on %s at %s",
            day_record_id, day, worry_time,
        )


notification_service = NotificationService()


def send_worry_time_notification(day_record_id: int, day: str, worry_time: str) -> None:
    """Job entry point; module-level so the scheduler can reference it."""
    notification_service.send_worry_time_notification(day_record_id, day, worry_time)
