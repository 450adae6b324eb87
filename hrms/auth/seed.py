"""Default roles and permissions."""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.auth.models import Permission, Role
from hrms.common.constants import PERMISSIONS, ROLE_DESCRIPTIONS

logger = logging.getLogger(__name__)


async def seed_roles_and_permissions(db: AsyncSession) -> None:
    """Create missing default roles / permissions. Safe to run repeatedly."""
    existing_perms = {
        p.name: p for p in (await db.execute(select(Permission))).scalars().all()
    }
    for name in sorted({p for perms in PERMISSIONS.values() for p in perms}):
        if name not in existing_perms:
            perm = Permission(name=name, description=name.replace("_", " ").capitalize())
            db.add(perm)
            existing_perms[name] = perm

    existing_roles = {
        r.name: r for r in (await db.execute(select(Role))).scalars().all()
    }
    created = 0
    for role_enum, perm_names in PERMISSIONS.items():
        role = existing_roles.get(role_enum.value)
        if role is None:
            role = Role(
                name=role_enum.value,
                description=ROLE_DESCRIPTIONS[role_enum],
                permissions=[existing_perms[n] for n in perm_names],
            )
            db.add(role)
            created += 1

    await db.flush()
    if created:
        logger.info("Seeded %d default roles", created)
