"""
Module to contain base class for Delivery channels
"""
from abc import ABC, abstractmethod

from core.entities import ExtractionSession


class DeliveryChannel(ABC):
    """
    Base interface for all delivery channels.
    """

    name: str

    @abstractmethod
    async def deliver(
        self,
        *,
        run_date: str,
        session: ExtractionSession,
    ) -> None:
        """
        Hand the session off to the report layer.
        Must raise exceptions on failure (handled upstream).
        """
        raise NotImplementedError
