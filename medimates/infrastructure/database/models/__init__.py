"""
数据库模型模块
"""
from medimates.infrastructure.database.models.medication import Medication, MedicationInventory
from medimates.infrastructure.database.models.schedule import Frequency, MedicationSchedule, MedicationTime
from medimates.infrastructure.database.models.reminder import (
    DoseStatus,
    Reminder,
    ReminderMedication,
    ReminderStatus,
    TERMINAL_STATUSES,
)
from medimates.infrastructure.database.models.history import MedicationHistory

__all__ = [
    "Medication",
    "MedicationInventory",
    "Frequency",
    "MedicationSchedule",
    "MedicationTime",
    "DoseStatus",
    "Reminder",
    "ReminderMedication",
    "ReminderStatus",
    "TERMINAL_STATUSES",
    "MedicationHistory",
]
