from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional
import logging

from svitlo.records import City, Queue
from svitlo.schedule import ScheduleBlock, split_days

logger = logging.getLogger(__name__)

# --- Data Models ---

@dataclass
class ScheduleFetchResult:
    """
    Outcome of a schedule page fetch. ok=False means the page could not be
    loaded at all; ok=True with no blocks means it loaded but had no ranges.
    """
    ok: bool
    blocks: List[ScheduleBlock] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def days(self) -> List[List[ScheduleBlock]]:
        return split_days(self.blocks)

    @property
    def today(self) -> List[ScheduleBlock]:
        days = self.days
        return days[0] if days else []

    @property
    def tomorrow(self) -> List[ScheduleBlock]:
        days = self.days
        return days[1] if len(days) > 1 else []


@dataclass
class QueuesResult:
    queues: List[Queue] = field(default_factory=list)
    from_cache: bool = False


# --- Abstract Base Class ---

class ScheduleDataSource(ABC):
    """
    Abstract interface for retrieving outage schedules.
    """

    @abstractmethod
    async def fetch_schedule(self, url: str) -> ScheduleFetchResult:
        """
        Loads the queue page and parses it into source-ordered blocks.
        Never raises on network problems: returns ok=False instead.
        """
        pass

    @abstractmethod
    async def search_cities(self, query: str) -> List[City]:
        """Returns matching localities (possibly empty)."""
        pass

    @abstractmethod
    async def get_queues(self, city_url: str) -> QueuesResult:
        """Returns queues listed on a city page."""
        pass
