import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import JSON, DateTime, ForeignKey, String, Text, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, validates

from .base import Base


class AuditAction(str, Enum):
    USER_PERMISSIONS_UPDATED = "USER_PERMISSIONS_UPDATED"
    USER_DOWNLOAD_ACCESS_CHANGED = "USER_DOWNLOAD_ACCESS_CHANGED"
    ROLE_TEMPLATE_CREATED = "ROLE_TEMPLATE_CREATED"
    ROLE_TEMPLATE_UPDATED = "ROLE_TEMPLATE_UPDATED"
    ROLE_TEMPLATE_DELETED = "ROLE_TEMPLATE_DELETED"
    SHARE_LINK_CREATED = "SHARE_LINK_CREATED"
    SHARE_LINK_UPDATED = "SHARE_LINK_UPDATED"
    SHARE_LINK_REVOKED = "SHARE_LINK_REVOKED"
    SHARE_LINK_REACTIVATED = "SHARE_LINK_REACTIVATED"
    PERMISSION_DENIED = "PERMISSION_DENIED"


class AuditLog(Base):
    """Append-only audit trail. Rows are never updated or deleted."""

    __tablename__ = "audit_logs"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    actor_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    action: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    entity_type: Mapped[str | None] = mapped_column(String(100), index=True)
    entity_id: Mapped[str | None] = mapped_column(String(255), index=True)
    # "metadata" is reserved on declarative classes
    metadata_: Mapped[dict | None] = mapped_column("metadata", JSON)
    ip_address: Mapped[str | None] = mapped_column(String(45))
    user_agent: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False, index=True
    )

    @validates("action")
    def validate_action(self, key: str, value: str) -> str:
        allowed = {action.value for action in AuditAction}
        if value not in allowed:
            raise ValueError(
                f"Invalid audit action '{value}'. "
                f"Must be one of: {', '.join(sorted(allowed))}"
            )
        return value
