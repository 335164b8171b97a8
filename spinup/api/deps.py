import uuid
from collections.abc import AsyncGenerator

from fastapi import Depends, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from spinup.common.enums import TeamMemberRole, UserRole
from spinup.common.exceptions import NotFoundError, PermissionDeniedError, UnauthenticatedError
from spinup.common.security import decode_token
from spinup.db.models.team import Team, TeamMember
from spinup.db.models.user import User
from spinup.db.session import async_session_factory


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def _request_token(request: Request) -> str | None:
    authorization = request.headers.get("authorization")
    if authorization:
        if not authorization.startswith("Bearer "):
            return None
        return authorization[len("Bearer "):]
    # Browser navigations (connect, callback, disconnect) carry the session cookie
    return request.cookies.get("access_token")


async def get_optional_user(request: Request, db: AsyncSession = Depends(get_db)) -> User | None:
    token = _request_token(request)
    if not token:
        return None

    try:
        payload = decode_token(token)
    except ValueError:
        return None
    if payload.get("type") != "access":
        return None

    try:
        user_id = uuid.UUID(str(payload.get("sub")))
    except ValueError:
        return None

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user or not user.is_active:
        return None
    return user


async def get_current_user(user: User | None = Depends(get_optional_user)) -> User:
    if user is None:
        raise UnauthenticatedError()
    return user


async def require_team_access(
    db: AsyncSession, user: User, team_id: uuid.UUID, *, write: bool = False
) -> Team:
    team = await db.get(Team, team_id)
    if not team:
        raise NotFoundError("Team", str(team_id))
    if user.role == UserRole.ADMIN.value:
        return team

    result = await db.execute(
        select(TeamMember).where(TeamMember.team_id == team_id, TeamMember.user_id == user.id)
    )
    membership = result.scalar_one_or_none()
    if not membership:
        raise PermissionDeniedError("You are not a member of this team")
    if write and membership.role != TeamMemberRole.ENTREPRENEUR.value:
        raise PermissionDeniedError("Mentors have read-only access to this team")
    return team
