"""
Audit service.

Records admin and system actions and serves the audit log.
"""

from typing import Any

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from modhub_core import get_logger
from modhub_database.models import AdminAction, User

logger = get_logger(__name__)

SYSTEM_ACTOR = "SYSTEM"
TARGET_TYPES = ("module", "user", "system", "review", "api_key")


def _format_value(value: Any) -> str:
    if isinstance(value, list):
        return f"{len(value)} items"
    if value is None or value == "":
        return "empty"
    return str(value)


def describe_changes(old_values: dict[str, Any], new_values: dict[str, Any]) -> str:
    """
    Render changed fields as "field: old → new" joined by commas.

    Lists are summarized by length. Unchanged fields are skipped.
    """
    changes = []
    for key, new_value in new_values.items():
        old_value = old_values.get(key)
        if old_value == new_value:
            continue
        changes.append(f"{key}: {_format_value(old_value)} → {_format_value(new_value)}")
    return ", ".join(changes) if changes else "No changes"


class AuditService:
    """Admin audit log service."""

    def __init__(self, session: AsyncSession):
        """
        Initialize audit service.

        Args:
            session: Database session.
        """
        self.session = session

    async def log_action(
        self,
        admin_id: str | None,
        action: str,
        details: str,
        target_type: str | None = None,
        target_id: str | int | None = None,
        old_values: dict[str, Any] | None = None,
        new_values: dict[str, Any] | None = None,
    ) -> AdminAction:
        """
        Add an audit entry to the current transaction.

        The caller commits; the entry is persisted together with the change
        it describes.

        Args:
            admin_id: Acting admin, or None for the system.
            action: Short action label.
            details: Human readable description.
            target_type: module, user, system, review or api_key.
            target_id: Affected object identifier.
            old_values: Values before the change.
            new_values: Values after the change.

        Returns:
            The pending audit entry.
        """
        if target_type is not None and target_type not in TARGET_TYPES:
            raise ValueError(f"Invalid audit target type: {target_type}")

        entry = AdminAction(
            admin_id=admin_id or SYSTEM_ACTOR,
            action=action,
            details=details,
            target_type=target_type,
            target_id=str(target_id) if target_id is not None else None,
            old_values=old_values,
            new_values=new_values,
        )
        self.session.add(entry)
        logger.info(
            "Admin action recorded",
            extra={"admin_id": entry.admin_id, "action": action, "target_id": entry.target_id},
        )
        return entry

    async def list_actions(
        self,
        page: int = 1,
        per_page: int = 20,
        admin_id: str | None = None,
        target_type: str | None = None,
        search: str | None = None,
    ) -> tuple[list[tuple[AdminAction, str | None]], int]:
        """
        List audit entries, newest first.

        Args:
            page: Page number (1-based).
            per_page: Page size.
            admin_id: Only actions by this admin.
            target_type: Only actions on this target type.
            search: Substring match on action or details.

        Returns:
            Tuple of ([(action, admin name)], total count).
        """
        conditions = []
        if admin_id:
            conditions.append(AdminAction.admin_id == admin_id)
        if target_type:
            conditions.append(AdminAction.target_type == target_type)
        if search:
            pattern = f"%{search}%"
            conditions.append(or_(AdminAction.action.ilike(pattern), AdminAction.details.ilike(pattern)))

        total = await self.session.scalar(select(func.count(AdminAction.id)).where(*conditions)) or 0

        stmt = (
            select(AdminAction, User.name)
            .outerjoin(User, User.id == AdminAction.admin_id)
            .where(*conditions)
            .order_by(AdminAction.created_at.desc(), AdminAction.id.desc())
            .offset((page - 1) * per_page)
            .limit(per_page)
        )
        result = await self.session.execute(stmt)
        return [(row[0], row[1]) for row in result.all()], total
