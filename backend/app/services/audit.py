from sqlalchemy.ext.asyncio import AsyncSession

from app.models.audit_log import AuditLog


async def log_action(
    session: AsyncSession,
    actor_id: int | None,
    action: str,
    resource: str,
    resource_id: int | str | None = None,
    details: dict | None = None,
) -> None:
    """Stage an audit row in the caller's transaction; the caller decides when to commit."""
    session.add(
        AuditLog(
            actor_id=actor_id,
            action=action,
            resource=resource,
            resource_id=str(resource_id) if resource_id is not None else None,
            details=details,
        )
    )
    await session.flush()
