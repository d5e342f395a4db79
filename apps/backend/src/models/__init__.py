"""Expose the support ORM models at package level.

These re-exports are intentional so callers can import from
``models`` (e.g. `from models import SupportTicket`). The `F401` noqa
suppresses unused-import warnings for the explicit re-exports.
"""

from .agent_events import AgentEvent  # noqa: F401
from .base import Base  # noqa: F401
from .change_events import ChangeEvent  # noqa: F401
from .customers import Customer  # noqa: F401
from .escalations import Escalation  # noqa: F401
from .knowledge_documents import KnowledgeDocument  # noqa: F401
from .orders import Order  # noqa: F401
from .support_interactions import SupportInteraction  # noqa: F401
from .support_tickets import SupportTicket  # noqa: F401
