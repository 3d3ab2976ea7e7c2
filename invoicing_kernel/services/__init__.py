"""Kernel services shared by every invoicing module."""

from invoicing_kernel.services.base import RecordCollectionService, new_record_id
from invoicing_kernel.services.sequence_service import DocumentSequenceService

__all__ = [
    "DocumentSequenceService",
    "RecordCollectionService",
    "new_record_id",
]
