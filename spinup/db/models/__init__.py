from spinup.db.models.artifact import Artifact
from spinup.db.models.team import Team, TeamMember
from spinup.db.models.trello_card_mapping import TrelloCardMapping
from spinup.db.models.trello_connection import TrelloConnection
from spinup.db.models.user import User

__all__ = [
    "Artifact",
    "Team",
    "TeamMember",
    "TrelloCardMapping",
    "TrelloConnection",
    "User",
]
