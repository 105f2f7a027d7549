"""
Contains base class for extraction workflows
"""
from abc import ABC, abstractmethod
from typing import Sequence

from core.entities import CategoryDescriptor, ExtractionSession


class ExtractionWorkflow(ABC):
    """
    Orchestrates loading → extraction → enrichment → scoring
    over a set of categories.
    """

    name: str

    @abstractmethod
    async def run(self, categories: Sequence[CategoryDescriptor]) -> ExtractionSession:
        """
        Execute the workflow and return the session.
        Must never raise uncaught exceptions.
        """
        raise NotImplementedError
