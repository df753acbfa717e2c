"""User service — the credential store and account lifecycle.

Learn: Service layer separates business logic from HTTP routing.
API routes call services, services call the database. Emails are
normalised here (trimmed, lower-cased) so lookups and the unique
constraint agree no matter how a client typed the address.
"""

import uuid

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from edtech.auth.password import hash_password
from edtech.db.models import USER_ACTIVE, USER_INACTIVE, User
from edtech.errors import EmailAlreadyRegistered, UserNotFound


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


class UserService:
    """Lookups and mutations on user accounts."""

    def __init__(self, db: AsyncSession, bcrypt_rounds: int = 12):
        self.db = db
        self.bcrypt_rounds = bcrypt_rounds

    # ─── Lookups ────────────────────────────────────────

    async def get(self, user_id: uuid.UUID) -> User:
        user = await self.db.get(User, user_id)
        if user is None:
            raise UserNotFound(f"user {user_id} not found")
        return user

    async def get_by_email(self, email: str) -> User:
        q = select(User).where(User.email == normalize_email(email))
        result = await self.db.execute(q)
        user = result.scalars().first()
        if user is None:
            raise UserNotFound("no user with that email")
        return user

    async def list_users(self) -> list[User]:
        result = await self.db.execute(
            select(User).order_by(User.surname, User.name)
        )
        return list(result.scalars().all())

    # ─── Mutations ──────────────────────────────────────

    async def create(
        self,
        name: str,
        surname: str,
        email: str,
        password: str,
        role_id: int,
    ) -> User:
        """Create an active account with a bcrypt-hashed password.

        Raises EmailAlreadyRegistered if the email is taken.
        """
        email = normalize_email(email)
        await self._ensure_email_free(email)

        user = User(
            name=name,
            surname=surname,
            email=email,
            password_hash=hash_password(password, rounds=self.bcrypt_rounds),
            role_id=role_id,
            status=USER_ACTIVE,
        )
        self.db.add(user)
        await self._commit_unique_email()
        await self.db.refresh(user)
        return user

    async def update_profile(
        self, user: User, name: str, surname: str, email: str
    ) -> User:
        email = normalize_email(email)
        if email != user.email:
            await self._ensure_email_free(email)
        user.name = name
        user.surname = surname
        user.email = email
        await self._commit_unique_email()
        await self.db.refresh(user)
        return user

    async def change_password(self, user: User, password: str) -> None:
        user.password_hash = hash_password(password, rounds=self.bcrypt_rounds)
        await self.db.commit()

    async def set_status(self, user: User, active: bool) -> User:
        user.status = USER_ACTIVE if active else USER_INACTIVE
        await self.db.commit()
        return user

    async def delete(self, user: User) -> None:
        await self.db.delete(user)
        await self.db.commit()

    # ─── Helpers ────────────────────────────────────────

    async def _ensure_email_free(self, email: str) -> None:
        result = await self.db.execute(select(User.id).where(User.email == email))
        if result.first() is not None:
            raise EmailAlreadyRegistered("email already registered")

    async def _commit_unique_email(self) -> None:
        """Commit, mapping a lost race on the email constraint."""
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise EmailAlreadyRegistered("email already registered")
