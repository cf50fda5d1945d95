"""
Storage Package

Handles persistence of exchanges, trading pairs and funding rate observations.

Current implementation:
- InMemoryStorage: process-local engine with atomic upserts

The pipeline depends only on FundingRateStorage, so a database-backed engine
can replace the in-memory one without touching collection code.
"""

from storage.interface import FundingRateStorage
from storage.memory import InMemoryStorage

__all__ = ["FundingRateStorage", "InMemoryStorage"]
