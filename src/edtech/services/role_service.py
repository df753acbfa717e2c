"""Role service — lookups over the fixed role set."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from edtech.db.models import DEFAULT_ROLES, Role
from edtech.errors import RoleNotFound


class RoleService:
    """Read access to roles, plus seeding for fresh databases."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_id(self, role_id: int) -> Role:
        role = await self.db.get(Role, role_id)
        if role is None:
            raise RoleNotFound(f"role {role_id} not found")
        return role

    async def get_by_name(self, name: str) -> Role:
        result = await self.db.execute(select(Role).where(Role.name == name))
        role = result.scalars().first()
        if role is None:
            raise RoleNotFound(f"role {name!r} not found")
        return role

    async def list_roles(self) -> list[Role]:
        result = await self.db.execute(select(Role).order_by(Role.id))
        return list(result.scalars().all())

    async def ensure_default_roles(self) -> int:
        """Insert any missing default roles. Returns how many were added."""
        existing = {r.id for r in await self.list_roles()}
        added = 0
        for role_id, name in DEFAULT_ROLES.items():
            if role_id not in existing:
                self.db.add(Role(id=role_id, name=name))
                added += 1
        if added:
            await self.db.commit()
        return added
