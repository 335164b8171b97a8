import json
import uuid
from collections.abc import AsyncGenerator
from datetime import datetime, timezone
from unittest.mock import patch

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import JSON, event
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from spinup.common.enums import ArtifactStatus, TeamMemberRole, UserRole
from spinup.common.security import create_access_token, trello_webhook_signature
from spinup.core.trello_sync.connections import webhook_callback_url
from spinup.db.base import Base
from spinup.db.models import *  # noqa: F401,F403 - ensure all models loaded

# Use in-memory SQLite for testing - remap JSONB to JSON
TEST_DATABASE_URL = "sqlite+aiosqlite://"


# Make JSONB render as JSON for SQLite
@event.listens_for(Base.metadata, "before_create")
def _remap_jsonb(target, connection, **kw):
    if connection.dialect.name == "sqlite":
        for table in target.tables.values():
            for column in table.columns:
                if isinstance(column.type, JSONB):
                    column.type = JSON()


@pytest.fixture
async def test_engine():
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    session_factory = async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False
    )
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
async def client(db_session):
    from spinup.api.deps import get_db
    from spinup.main import app

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ---------- Teams & actors ----------


async def _make_user(db_session, role: UserRole, label: str):
    from spinup.db.models.user import User

    user = User(
        id=uuid.uuid4(),
        email=f"{label}_{uuid.uuid4().hex[:8]}@test.com",
        full_name=f"Test {label.title()}",
        role=role.value,
    )
    db_session.add(user)
    await db_session.flush()
    return user


async def _add_member(db_session, team, user, role: TeamMemberRole):
    from spinup.db.models.team import TeamMember

    db_session.add(TeamMember(team_id=team.id, user_id=user.id, role=role.value))
    await db_session.flush()


@pytest.fixture
async def team(db_session):
    from spinup.db.models.team import Team

    team = Team(id=uuid.uuid4(), name="Acme Robotics")
    db_session.add(team)
    await db_session.flush()
    return team


@pytest.fixture
async def other_team(db_session):
    from spinup.db.models.team import Team

    team = Team(id=uuid.uuid4(), name="Globex Analytics")
    db_session.add(team)
    await db_session.flush()
    return team


@pytest.fixture
async def founder(db_session, team):
    user = await _make_user(db_session, UserRole.ENTREPRENEUR, "founder")
    await _add_member(db_session, team, user, TeamMemberRole.ENTREPRENEUR)
    return user


@pytest.fixture
async def mentor(db_session, team):
    user = await _make_user(db_session, UserRole.MENTOR, "mentor")
    await _add_member(db_session, team, user, TeamMemberRole.MENTOR)
    return user


@pytest.fixture
async def outsider(db_session):
    return await _make_user(db_session, UserRole.ENTREPRENEUR, "outsider")


def _headers_for(user):
    return {"Authorization": f"Bearer {create_access_token({'sub': str(user.id)})}"}


@pytest.fixture
def auth_headers(founder):
    return _headers_for(founder)


@pytest.fixture
def mentor_headers(mentor):
    return _headers_for(mentor)


@pytest.fixture
def outsider_headers(outsider):
    return _headers_for(outsider)


# ---------- Trello state ----------


@pytest.fixture
async def connection(db_session, team):
    from spinup.db.models.trello_connection import TrelloConnection

    conn = TrelloConnection(
        team_id=team.id,
        access_token="tok_connected",
        trello_member_id="member_1",
        connected_at=datetime.now(timezone.utc),
    )
    db_session.add(conn)
    await db_session.flush()
    return conn


@pytest.fixture
async def board_connection(db_session, connection):
    connection.board_id = "board_1"
    connection.webhook_id = "webhook_1"
    await db_session.flush()
    return connection


@pytest.fixture
async def artifact(db_session, team, founder):
    from spinup.db.models.artifact import Artifact

    artifact = Artifact(
        id=uuid.uuid4(),
        team_id=team.id,
        artifact_type="value_proposition",
        title="Value Proposition",
        data={"statement": "10x faster onboarding", "segments": ["SMB", "Agencies"]},
        status=ArtifactStatus.IN_PROGRESS.value,
        created_by=founder.id,
    )
    db_session.add(artifact)
    await db_session.flush()
    return artifact


@pytest.fixture
async def card_mapping(db_session, team, artifact, board_connection):
    from spinup.db.models.trello_card_mapping import TrelloCardMapping

    mapping = TrelloCardMapping(
        artifact_id=artifact.id,
        team_id=team.id,
        trello_card_id="card_1",
    )
    db_session.add(mapping)
    await db_session.flush()
    return mapping


# ---------- Webhook helpers ----------


def card_moved_payload(card_id: str, list_after: str, list_before: str = "Doing") -> dict:
    return {
        "action": {
            "type": "updateCard",
            "data": {
                "card": {"id": card_id, "name": "Value Proposition"},
                "listBefore": {"name": list_before},
                "listAfter": {"name": list_after},
            },
        },
        "model": {"id": "board_1"},
    }


@pytest.fixture
def post_webhook(client):
    async def _post(team_id, payload=None, *, raw: bytes | None = None, signed: bool = True):
        body = raw if raw is not None else json.dumps(payload).encode()
        headers = {"Content-Type": "application/json"}
        if signed:
            headers["X-Trello-Webhook"] = trello_webhook_signature(body, webhook_callback_url(team_id))
        return await client.post(f"/api/v1/trello/webhook/{team_id}", content=body, headers=headers)

    return _post


@pytest.fixture(autouse=True)
def mock_celery_tasks():
    """Mock all Celery task.delay() calls to prevent actual task execution in tests."""
    with (
        patch("spinup.tasks.trello_tasks.push_artifact_to_trello.delay") as push,
        patch("spinup.tasks.trello_tasks.deregister_trello_webhook.delay") as teardown,
    ):
        yield {"push": push, "teardown": teardown}
