"""SpinUp external integration clients.

Clients implement ``BaseIntegration`` and fall back to realistic fake data
when configured with ``mock_`` keys.
"""

from spinup.integrations.base import BaseIntegration
from spinup.integrations.trello import TrelloClient

__all__ = [
    "BaseIntegration",
    "TrelloClient",
]
