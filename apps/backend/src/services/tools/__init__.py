"""Support tools package.

``build_tool_registry`` assembles the fixed tool set; ``get_tool_registry``
is the process-wide instance used as a FastAPI dependency.
"""

from functools import lru_cache

from core.background import get_background_tasks
from core.config import get_settings
from core.email import EscalationNotifier
from services.tools.customers import (
    tool_fetch_customer_profile,
    tool_fetch_recent_orders,
)
from services.tools.deps import RequestContext, ToolContext, ToolDeps
from services.tools.escalation import tool_escalate_ticket
from services.tools.events import tool_log_change_event, tool_record_agent_event
from services.tools.interactions import tool_log_customer_interaction
from services.tools.registry import ToolRegistry, ToolSpec
from services.tools.schemas import (
    CreateSupportTicketArgs,
    EscalateTicketArgs,
    FetchCustomerProfileArgs,
    FetchRecentOrdersArgs,
    GetTicketDetailsArgs,
    LogChangeEventArgs,
    LogCustomerInteractionArgs,
    RecordAgentEventArgs,
    UpdateTicketStatusArgs,
)
from services.tools.tickets import (
    tool_create_support_ticket,
    tool_get_ticket_details,
    tool_update_ticket_status,
)


SUPPORT_TOOLS: tuple[ToolSpec, ...] = (
    ToolSpec(
        name="fetch_customer_profile",
        description="Retrieve the latest customer profile JSON (preferences, history, etc.).",
        args_model=FetchCustomerProfileArgs,
        handler=tool_fetch_customer_profile,
    ),
    ToolSpec(
        name="fetch_recent_orders",
        description="Return the customer's most recent orders sorted by update time.",
        args_model=FetchRecentOrdersArgs,
        handler=tool_fetch_recent_orders,
    ),
    ToolSpec(
        name="create_support_ticket",
        description="Create a structured support ticket tied to the current customer conversation.",
        args_model=CreateSupportTicketArgs,
        handler=tool_create_support_ticket,
    ),
    ToolSpec(
        name="update_ticket_status",
        description="Update the status of an existing support ticket and optionally add internal notes.",
        args_model=UpdateTicketStatusArgs,
        handler=tool_update_ticket_status,
    ),
    ToolSpec(
        name="get_ticket_details",
        description="Retrieve ticket metadata and recent interactions for context.",
        args_model=GetTicketDetailsArgs,
        handler=tool_get_ticket_details,
    ),
    ToolSpec(
        name="log_customer_interaction",
        description="Persist a customer interaction note for future auditing or follow ups.",
        args_model=LogCustomerInteractionArgs,
        handler=tool_log_customer_interaction,
    ),
    ToolSpec(
        name="escalate_ticket",
        description="Create an escalation entry (and mark ticket escalated) for human follow-up.",
        args_model=EscalateTicketArgs,
        handler=tool_escalate_ticket,
    ),
    ToolSpec(
        name="log_change_event",
        description="Record a change entry for auditing (e.g., a status update or refund).",
        args_model=LogChangeEventArgs,
        handler=tool_log_change_event,
    ),
    ToolSpec(
        name="record_agent_event",
        description="Log an agent decision cycle (intent, sentiment, tasks) for analytics.",
        args_model=RecordAgentEventArgs,
        handler=tool_record_agent_event,
    ),
)


def build_tool_registry(deps: ToolDeps) -> ToolRegistry:
    return ToolRegistry(SUPPORT_TOOLS, deps)


@lru_cache
def get_tool_registry() -> ToolRegistry:
    from dependencies.db import AsyncSessionLocal

    deps = ToolDeps(
        session_factory=AsyncSessionLocal,
        agent_id=get_settings().AGENT_ID,
        notifier=EscalationNotifier(get_background_tasks()),
    )
    return build_tool_registry(deps)


__all__ = [
    "RequestContext",
    "SUPPORT_TOOLS",
    "ToolContext",
    "ToolDeps",
    "ToolRegistry",
    "ToolSpec",
    "build_tool_registry",
    "get_tool_registry",
]
