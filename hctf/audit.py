"""Audit trail for state-mutating operations.

An ``AuditEvent`` row is staged on the caller's session with :meth:`AuditTrail.record`
so it commits (or rolls back) together with the change it describes. Once the
commit went through, :meth:`AuditTrail.announce` writes the human readable line
to the ``hctf.audit`` logger.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from hctf.models.audit_event import AuditEvent
from hctf.models.team import Team

logger = logging.getLogger("hctf.audit")


class AuditTrail:
    def __init__(self, log: logging.Logger = logger) -> None:
        self.log = log

    def record(
        self,
        db: AsyncSession,
        action: str,
        *,
        actor: Optional[Team] = None,
        targets: Iterable[int] = (),
        outcome: str = "success",
        detail: Optional[str] = None,
    ) -> AuditEvent:
        event = AuditEvent(
            actor_id=actor.team_id if actor is not None else None,
            action=action,
            targets=list(targets),
            outcome=outcome,
            detail=detail,
        )
        db.add(event)
        return event

    def announce(self, event: AuditEvent) -> None:
        self.log.info(
            "%s by %s on %s: %s%s",
            event.action,
            event.actor_id if event.actor_id is not None else "-",
            event.targets,
            event.outcome,
            f" ({event.detail})" if event.detail else "",
            extra={
                "audit": {
                    "action": event.action,
                    "actor_id": event.actor_id,
                    "targets": event.targets,
                    "outcome": event.outcome,
                }
            },
        )

    def failed(
        self,
        action: str,
        *,
        actor_id: Optional[int] = None,
        targets: Iterable[int] = (),
        reason: str = "database_error",
    ) -> None:
        """Log a mutation that never committed. Nothing is persisted."""

        target_ids = list(targets)
        self.log.warning(
            "%s by %s on %s: failed (%s)",
            action,
            actor_id if actor_id is not None else "-",
            target_ids,
            reason,
            extra={
                "audit": {
                    "action": action,
                    "actor_id": actor_id,
                    "targets": target_ids,
                    "outcome": "failed",
                }
            },
        )


_audit_trail = AuditTrail()


def get_audit_trail() -> AuditTrail:
    return _audit_trail
