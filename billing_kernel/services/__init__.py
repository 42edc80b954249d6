"""Kernel services: flush-only persistence infrastructure."""

from billing_kernel.services.base import BaseService
from billing_kernel.services.sequence_service import SequenceService

__all__ = ["BaseService", "SequenceService"]
