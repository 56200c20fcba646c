"""
Utility modules for the chain-insight analysis pipeline.
"""

from .error_classification import (
    ClassifiedError,
    ErrorClassifier,
    ErrorKind,
    PipelineError,
    error_classifier,
)
from .structured_logging import LoggingManager, get_logger, logging_manager, with_correlation_id

__all__ = [
    "ClassifiedError",
    "ErrorClassifier",
    "ErrorKind",
    "PipelineError",
    "error_classifier",
    "LoggingManager",
    "get_logger",
    "logging_manager",
    "with_correlation_id",
]
