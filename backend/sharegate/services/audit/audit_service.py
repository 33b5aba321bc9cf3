"""
Audit emitter - the single write path into the audit trail.

Every entry is written through its own store unit of work, isolated from the
business transaction that triggered it. A failing audit write is logged and
swallowed: it must never change the outcome of the operation being audited,
and it must never commit or roll back someone else's transaction.
"""
from __future__ import annotations

import logging
import uuid
from typing import Any

from ...domain.context import EMPTY_CONTEXT, RequestContext
from ...domain.ports.audit import AuditLogData, AuditLogStoreFactory
from ...models.audit_log import AuditAction

logger = logging.getLogger("sharegate.audit")


def build_metadata(
    old_values: dict[str, Any] | None = None,
    new_values: dict[str, Any] | None = None,
    additional_data: dict[str, Any] | None = None,
) -> dict[str, Any] | None:
    metadata: dict[str, Any] = {}
    if old_values is not None:
        metadata["old_values"] = old_values
    if new_values is not None:
        metadata["new_values"] = new_values
    if additional_data is not None:
        metadata["additional_data"] = additional_data
    return metadata or None


class AuditEmitter:
    def __init__(self, store_factory: AuditLogStoreFactory) -> None:
        self._store_factory = store_factory

    async def emit(
        self,
        action: AuditAction,
        *,
        actor_id: uuid.UUID | None,
        entity_type: str | None = None,
        entity_id: str | uuid.UUID | None = None,
        old_values: dict[str, Any] | None = None,
        new_values: dict[str, Any] | None = None,
        additional_data: dict[str, Any] | None = None,
        context: RequestContext = EMPTY_CONTEXT,
    ) -> AuditLogData | None:
        """Append one audit entry.

        Returns:
            The stored entry, or None when the write failed.
        """
        action_value = AuditAction(action).value
        try:
            async with self._store_factory() as store:
                try:
                    entry = await store.append(
                        actor_id=actor_id,
                        action=action_value,
                        entity_type=entity_type,
                        entity_id=str(entity_id) if entity_id is not None else None,
                        metadata=build_metadata(old_values, new_values, additional_data),
                        ip_address=context.ip_address,
                        user_agent=context.user_agent,
                    )
                    await store.commit()
                except Exception:
                    await store.rollback()
                    raise
        except Exception:
            logger.exception(
                "audit_write_failed action=%s actor_id=%s entity_type=%s entity_id=%s",
                action_value,
                actor_id,
                entity_type,
                entity_id,
            )
            return None

        logger.info(
            "audit_recorded action=%s actor_id=%s entity_type=%s entity_id=%s",
            action_value,
            actor_id,
            entity_type,
            entity_id,
        )
        return entry
