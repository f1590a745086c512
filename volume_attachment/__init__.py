"""
Attachment reconciliation for detachable block storage volumes
"""

from .config import ReconcilerConfig, setup_logging
from .providers import get_storage_provider
from .shared import AttachmentReconciler, AttachmentResult, DriftReport

__version__ = "0.1.0"

__all__ = [
    "ReconcilerConfig",
    "setup_logging",
    "get_storage_provider",
    "AttachmentReconciler",
    "AttachmentResult",
    "DriftReport",
]
