from event_scheduler.services.dispatcher import DispatchReport, NotificationDispatcher
from event_scheduler.services.retention import RetentionCleaner
from event_scheduler.services.scheduler import SchedulerService, build_scheduler_service

__all__ = [
    "DispatchReport",
    "NotificationDispatcher",
    "RetentionCleaner",
    "SchedulerService",
    "build_scheduler_service",
]
