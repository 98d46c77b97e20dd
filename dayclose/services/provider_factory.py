from __future__ import annotations

from functools import lru_cache

from dayclose.config import settings
from dayclose.services.mock_ledger_provider import MockLedgerProvider
from dayclose.services.sql_ledger_provider import SqlLedgerProvider


@lru_cache(maxsize=1)
def get_ledger_provider():
    provider = settings.ledger_provider.strip().lower()
    if provider == 'mock':
        return MockLedgerProvider()
    from dayclose.db import SessionLocal

    return SqlLedgerProvider(SessionLocal)
