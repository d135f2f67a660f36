"""
Store cleanup.

Removes rows that can no longer influence a check:
- permissions and role assignments whose actor was deleted
- permissions whose ability, and assignments whose role, was deleted
  (SQLite does not enforce the foreign key cascades)
- abilities whose subject instance was deleted
- abilities no permission row refers to

Only registered entity types backed by a mapped table are inspected;
rows pointing at anything else are left alone.

Usage:
    report = await Cleaner(session, registry).run()
    await session.commit()
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import structlog
from sqlalchemy import String, cast, delete, select
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.exc import NoInspectionAvailable
from sqlalchemy.ext.asyncio import AsyncSession

from bastion.models import Ability, AssignedRole, Permission, Role

from .registry import EntityRegistry

logger = structlog.get_logger()


@dataclass
class CleanReport:
    unassigned_abilities: int = 0
    orphaned_abilities: int = 0
    orphaned_permissions: int = 0
    orphaned_assignments: int = 0

    @property
    def total(self) -> int:
        return (
            self.unassigned_abilities
            + self.orphaned_abilities
            + self.orphaned_permissions
            + self.orphaned_assignments
        )


class Cleaner:
    def __init__(self, db: AsyncSession, registry: EntityRegistry):
        self.db = db
        self.registry = registry

    async def run(self, unassigned: bool = True, orphaned: bool = True) -> CleanReport:
        report = CleanReport()
        if orphaned:
            report.orphaned_permissions = await self._delete_dangling(
                Permission, Permission.ability_id, Ability.id,
            )
            report.orphaned_assignments = await self._delete_dangling(
                AssignedRole, AssignedRole.role_id, Role.id,
            )
            report.orphaned_permissions += await self._delete_missing_actors(Permission)
            report.orphaned_assignments += await self._delete_missing_actors(AssignedRole)
            report.orphaned_abilities = await self.delete_orphaned_abilities()
        if unassigned:
            report.unassigned_abilities = await self.delete_unassigned_abilities()

        logger.info(
            "store_cleaned",
            unassigned_abilities=report.unassigned_abilities,
            orphaned_abilities=report.orphaned_abilities,
            orphaned_permissions=report.orphaned_permissions,
            orphaned_assignments=report.orphaned_assignments,
        )
        return report

    async def delete_unassigned_abilities(self) -> int:
        result = await self.db.execute(
            delete(Ability)
            .where(Ability.id.not_in(select(Permission.ability_id)))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def delete_orphaned_abilities(self) -> int:
        tags = await self.db.execute(
            select(Ability.subject_type)
            .where(Ability.subject_id.is_not(None))
            .distinct()
        )
        deleted = 0
        for tag in tags.scalars().all():
            existing = self._existing_keys(tag)
            if existing is None:
                continue
            orphans = (
                select(Ability.id)
                .where(Ability.subject_type == tag)
                .where(Ability.subject_id.is_not(None))
                .where(Ability.subject_id.not_in(existing))
            )
            ids = list((await self.db.execute(orphans)).scalars().all())
            if not ids:
                continue
            await self.db.execute(
                delete(Permission)
                .where(Permission.ability_id.in_(ids))
                .execution_options(synchronize_session=False)
            )
            result = await self.db.execute(
                delete(Ability)
                .where(Ability.id.in_(ids))
                .execution_options(synchronize_session=False)
            )
            deleted += result.rowcount
        return deleted

    async def _delete_dangling(self, model: Any, reference: Any, target: Any) -> int:
        """Delete rows whose foreign key points at a deleted record."""
        result = await self.db.execute(
            delete(model)
            .where(reference.not_in(select(target)))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def _delete_missing_actors(self, model: Any) -> int:
        tags = await self.db.execute(
            select(model.actor_type).where(model.actor_type.is_not(None)).distinct()
        )
        deleted = 0
        for tag in tags.scalars().all():
            existing = self._existing_keys(tag)
            if existing is None:
                continue
            result = await self.db.execute(
                delete(model)
                .where(model.actor_type == tag)
                .where(model.actor_id.not_in(existing))
                .execution_options(synchronize_session=False)
            )
            deleted += result.rowcount
        return deleted

    def _existing_keys(self, tag: str):
        """Subquery of stored identities for a type tag, None if not inspectable."""
        if tag == self.registry.type_tag(Role):
            cls = Role
        elif self.registry.has_entity(tag):
            cls = self.registry.entity_class(tag)
        else:
            return None
        try:
            sa_inspect(cls)
        except NoInspectionAvailable:
            return None
        column = getattr(cls, self.registry.key_name(cls))
        return select(cast(column, String))
