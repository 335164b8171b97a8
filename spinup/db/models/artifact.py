import uuid

from sqlalchemy import ForeignKey, String
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from spinup.common.enums import ArtifactStatus
from spinup.db.base import BaseModel


class Artifact(BaseModel):
    """A team's unit of work (value proposition, financial model, ...).

    Content entry lives in the artifact forms; the sync engine only reads
    title/data and may move ``status`` forward to ``complete``.
    """

    __tablename__ = "artifacts"

    team_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("teams.id"), nullable=False, index=True
    )
    artifact_type: Mapped[str] = mapped_column(String(100), nullable=False)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    data: Mapped[dict | None] = mapped_column(JSONB, nullable=True, default=dict)
    status: Mapped[ArtifactStatus] = mapped_column(
        String(20), nullable=False, default=ArtifactStatus.DRAFT
    )
    created_by: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=True
    )
