import enum


class UserRole(str, enum.Enum):
    ADMIN = "admin"
    MENTOR = "mentor"
    ENTREPRENEUR = "entrepreneur"


class TeamMemberRole(str, enum.Enum):
    ENTREPRENEUR = "entrepreneur"
    MENTOR = "mentor"


class ArtifactStatus(str, enum.Enum):
    DRAFT = "draft"
    IN_PROGRESS = "in_progress"
    COMPLETE = "complete"


class ConnectionState(str, enum.Enum):
    NOT_CONNECTED = "not_connected"
    CONNECTED_NO_BOARD = "connected_no_board"
    CONNECTED_WITH_BOARD = "connected_with_board"


class WebhookEventKind(str, enum.Enum):
    CARD_MOVED = "card_moved"
    OTHER = "other"


class ReconcileOutcome(str, enum.Enum):
    APPLIED = "applied"
    IGNORED = "ignored"
