"""
数据库仓储模块
"""
from medimates.infrastructure.database.repository.base import BaseRepository
from medimates.infrastructure.database.repository.medication_repository import MedicationRepository
from medimates.infrastructure.database.repository.inventory_repository import InventoryRepository
from medimates.infrastructure.database.repository.schedule_repository import ScheduleRepository
from medimates.infrastructure.database.repository.reminder_repository import ReminderRepository
from medimates.infrastructure.database.repository.history_repository import HistoryRepository

__all__ = [
    "BaseRepository",
    "MedicationRepository",
    "InventoryRepository",
    "ScheduleRepository",
    "ReminderRepository",
    "HistoryRepository",
]
