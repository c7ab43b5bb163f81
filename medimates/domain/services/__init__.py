"""
领域服务
"""
from medimates.domain.services.medication_catalog import MedicationCatalog
from medimates.domain.services.schedule_store import ScheduleStore
from medimates.domain.services.reminder_generator import ReminderGenerator, ReminderStream
from medimates.domain.services.adherence_tracker import AdherenceTracker

__all__ = [
    "MedicationCatalog",
    "ScheduleStore",
    "ReminderGenerator",
    "ReminderStream",
    "AdherenceTracker",
]
