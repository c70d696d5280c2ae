# fittrack/core/memory_manager.py
"""
Keeps daily meal and water records in process memory.

Used when no DATABASE_URL is configured (local development) and by the
test suite. Each write completes without yielding to the event loop, so an
append or a set is atomic with respect to other requests in the same process.
Nothing survives a restart.
"""
import copy
import logging
from datetime import date
from typing import Dict, Tuple

from fittrack.core.records import DailyRecord, MealItem, check_liters, check_meal_slot

logger = logging.getLogger(__name__)


class MemoryRecordStore:
    def __init__(self):
        """Initializes an empty store."""
        self._records: Dict[Tuple[str, date], DailyRecord] = {}
        logger.info("MemoryRecordStore initialized. Records will not be persisted.")

    def _get_or_create(self, user_id: str, day: date) -> DailyRecord:
        key = (user_id, day)
        record = self._records.get(key)
        if record is None:
            record = DailyRecord(user_id=user_id, date=day)
            self._records[key] = record
        return record

    async def upsert_meal_item(self, user_id: str, day: date, meal_slot: str,
                               item: MealItem) -> DailyRecord:
        """Appends one item to a meal slot, creating the day's record if needed."""
        check_meal_slot(meal_slot)
        record = self._get_or_create(user_id, day)
        record.meals.setdefault(meal_slot, []).append(item)
        return copy.deepcopy(record)

    async def upsert_water_total(self, user_id: str, day: date, liters: float) -> DailyRecord:
        """Sets the day's water total."""
        liters = check_liters(liters)
        record = self._get_or_create(user_id, day)
        record.liters_drank = liters
        return copy.deepcopy(record)

    async def get_daily_record(self, user_id: str, day: date) -> DailyRecord:
        record = self._records.get((user_id, day))
        if record is None:
            return DailyRecord(user_id=user_id, date=day)
        return copy.deepcopy(record)

    async def initialize(self):
        pass

    async def close(self):
        pass
