from __future__ import annotations

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from app.domain.errors import ConflictError, InvalidStateError, NotFoundError
from app.domain.models import User, UserCreate, UserUpdate, now_utc
from app.infra.db import get_engine
from app.infra.events import event_bus


def get_user_or_raise(session: Session, user_id: str) -> User:
    user = session.get(User, user_id)
    if user is None:
        raise NotFoundError("user_not_found", "user not found")
    return user


class IdentityService:
    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def create_user(self, payload: UserCreate) -> User:
        with self._session() as session:
            user = User(
                username=payload.username,
                full_name=payload.full_name,
                role=payload.role,
                is_active=payload.is_active,
            )
            session.add(user)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise ConflictError("username_taken", "username already exists") from exc
            session.refresh(user)

        event_bus.publish_dict(
            "user.created",
            {"user_id": user.id, "username": user.username, "role": user.role},
        )
        return user

    def list_users(self, *, is_active: bool | None = None) -> list[User]:
        with self._session() as session:
            statement = select(User)
            if is_active is not None:
                statement = statement.where(User.is_active == is_active)
            return list(session.exec(statement).all())

    def get_user(self, user_id: str) -> User:
        with self._session() as session:
            return get_user_or_raise(session, user_id)

    def get_active_user(self, user_id: str) -> User:
        user = self.get_user(user_id)
        if not user.is_active:
            raise InvalidStateError("user_inactive", "user account is inactive")
        return user

    def update_user(self, user_id: str, payload: UserUpdate) -> User:
        with self._session() as session:
            user = get_user_or_raise(session, user_id)
            if payload.full_name is not None:
                user.full_name = payload.full_name
            if payload.role is not None:
                user.role = payload.role
            if payload.is_active is not None:
                user.is_active = payload.is_active
            user.updated_at = now_utc()
            session.add(user)
            session.commit()
            session.refresh(user)
            return user
