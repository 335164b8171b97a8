import uuid

from sqlalchemy import ForeignKey, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from spinup.common.enums import TeamMemberRole
from spinup.db.base import BaseModel


class Team(BaseModel):
    __tablename__ = "teams"

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Relationships
    members = relationship("TeamMember", back_populates="team", lazy="selectin")
    trello_connection = relationship(
        "TrelloConnection", back_populates="team", uselist=False, lazy="selectin"
    )


class TeamMember(BaseModel):
    __tablename__ = "team_members"
    __table_args__ = (UniqueConstraint("team_id", "user_id", name="uq_team_members_team_user"),)

    team_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("teams.id"), nullable=False, index=True
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True
    )
    role: Mapped[TeamMemberRole] = mapped_column(
        String(20), nullable=False, default=TeamMemberRole.ENTREPRENEUR
    )

    # Relationships
    team = relationship("Team", back_populates="members")
    user = relationship("User", back_populates="memberships")
