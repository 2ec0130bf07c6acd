"""Audit Log sink for payroll operations."""

from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from guard_payroll.models import AuditEvent

logger = logging.getLogger(__name__)


class AuditLogger:
    """Records audit events in the current session and mirrors them to the log."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def record(
        self,
        actor_id: str,
        action: str,
        entity_id: UUID | None,
        description: str,
        entity_type: str = "payroll",
        reference: str | None = None,
        before: dict[str, Any] | None = None,
        after: dict[str, Any] | None = None,
    ) -> AuditEvent:
        event = AuditEvent(
            actor_id=actor_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            reference=reference,
            description=description,
            before_json=before,
            after_json=after,
        )
        self.session.add(event)
        await self.session.flush()
        logger.info(
            "audit action=%s entity=%s:%s actor=%s %s",
            action,
            entity_type,
            entity_id,
            actor_id,
            description,
        )
        return event
