from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from spinup.common.enums import UserRole
from spinup.db.base import BaseModel


class User(BaseModel):
    """Platform account. Owned by the auth collaborator; read-only here."""

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[UserRole] = mapped_column(String(20), nullable=False, default=UserRole.ENTREPRENEUR)
    is_active: Mapped[bool] = mapped_column(default=True, nullable=False)

    # Relationships
    memberships = relationship("TeamMember", back_populates="user", lazy="selectin")
