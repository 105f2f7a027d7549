"""
Workflows module - Session orchestration for content extraction.
"""
from workflows.base import ExtractionWorkflow
from workflows.pipeline_factory import create_categories_from_config
from workflows.session import SessionOrchestrator, SessionState

__all__ = [
    "ExtractionWorkflow",
    "SessionOrchestrator",
    "SessionState",
    "create_categories_from_config",
]
