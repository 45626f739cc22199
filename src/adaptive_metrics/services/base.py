"""
Base service classes and protocols.

Defines the collaborator interfaces the engine consumes and the base class
shared by services.
"""

from abc import ABC
from datetime import datetime
from typing import List, Optional, Protocol, runtime_checkable
import logging

from ..config import EngineSettings, get_settings
from ..models import ActivitySample


@runtime_checkable
class SampleStore(Protocol):
    """
    Protocol for the activity source.

    Implementations must return activities sorted by start time ascending.
    Gaps or provider outages are the store's concern; the engine works with
    whatever subset is returned.
    """

    def fetch_activities(
        self,
        athlete_id: str,
        since: datetime,
        limit: Optional[int] = None,
    ) -> List[ActivitySample]:
        """Fetch activities that started at or after since."""
        ...


class BaseService(ABC):
    """
    Abstract base class for all services.

    Provides common functionality:
    - Settings injection
    - Logging setup
    """

    def __init__(
        self,
        settings: Optional[EngineSettings] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._logger = logger or logging.getLogger(self.__class__.__name__)

    @property
    def settings(self) -> EngineSettings:
        """Get the settings instance."""
        return self._settings

    @property
    def logger(self) -> logging.Logger:
        """Get the logger instance."""
        return self._logger
