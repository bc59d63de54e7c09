"""Background workers."""

from trackbridge.application.workers.verification_queue import VerificationQueue

__all__ = ["VerificationQueue"]
