"""
Audit Log Service.

Append-only writer and reader for security events. There is no update or
delete path.

Two write modes:
- `record` joins the caller's transaction, so the entry commits or rolls
  back together with the operation it describes (activation, revocation).
- `record_failure` commits immediately. Failed credential checks must stay
  on record even though the request itself fails.
"""

import json
from collections.abc import Mapping, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from licensegate.db.models import AuditLog
from licensegate.models.api import AuditAction

logger = get_logger(__name__)

DetailValue = str | int | bool | None


def format_details(details: Mapping[str, DetailValue] | str | None) -> str | None:
    """Serialize structured details into the stored text column."""
    if details is None or isinstance(details, str):
        return details
    return json.dumps(dict(details), sort_keys=True, separators=(",", ":"))


class AuditLogger:
    """Writes and reads audit_logs rows on a given session."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def record(
        self,
        action: AuditAction,
        actor: str,
        target: str | None = None,
        details: Mapping[str, DetailValue] | str | None = None,
    ) -> AuditLog:
        """Add an entry to the current transaction. The caller commits."""
        entry = AuditLog(
            action=action.value,
            actor=actor,
            target=target,
            details=format_details(details),
        )
        self.session.add(entry)
        await self.session.flush()
        logger.info("audit_recorded", action=action.value, actor=actor, target=target)
        return entry

    async def record_failure(
        self,
        action: AuditAction,
        actor: str,
        target: str | None = None,
        details: Mapping[str, DetailValue] | str | None = None,
    ) -> None:
        """
        Persist an entry for a failed operation right away.

        Only used on paths where the session holds no other pending writes.
        """
        await self.record(action, actor, target, details)
        await self.session.commit()

    async def list_recent(self, limit: int = 50) -> Sequence[AuditLog]:
        """Most recent entries first."""
        stmt = select(AuditLog).order_by(AuditLog.timestamp.desc()).limit(limit)
        result = await self.session.execute(stmt)
        return result.scalars().all()
