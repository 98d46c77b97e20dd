from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import date, datetime

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DayLifecycleSignal:
    action: str
    day_operation_id: int
    store_id: int
    business_date: date
    occurred_at: datetime
    actor_principal_id: int | None = None
    severity: str | None = None


SignalHandler = Callable[[DayLifecycleSignal], None]


def emit_lifecycle_signal(handlers: Iterable[SignalHandler] | None, signal: DayLifecycleSignal) -> None:
    """Fan a completed transition out to read-model/cache owners.

    Handlers run after the transition has been applied; a failing handler is
    the caller's problem and propagates.
    """
    logger.info(
        'day %s: store=%s date=%s id=%s actor=%s severity=%s',
        signal.action,
        signal.store_id,
        signal.business_date.isoformat(),
        signal.day_operation_id,
        signal.actor_principal_id,
        signal.severity,
    )
    for handler in handlers or ():
        handler(signal)
