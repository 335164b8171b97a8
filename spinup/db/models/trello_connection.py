import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from spinup.db.base import BaseModel


class TrelloConnection(BaseModel):
    __tablename__ = "trello_connections"
    __table_args__ = (
        # A board is never selected without a live webhook subscription
        CheckConstraint(
            "board_id IS NULL OR webhook_id IS NOT NULL",
            name="ck_trello_connections_board_has_webhook",
        ),
    )

    team_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("teams.id"), nullable=False, unique=True, index=True
    )
    access_token: Mapped[str] = mapped_column(Text, nullable=False)
    trello_member_id: Mapped[str] = mapped_column(String(100), nullable=False)
    board_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    webhook_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    connected_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    last_synced_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relationships
    team = relationship("Team", back_populates="trello_connection")

    def __repr__(self) -> str:
        # access_token deliberately omitted
        return f"<TrelloConnection team={self.team_id} board={self.board_id} webhook={self.webhook_id}>"
