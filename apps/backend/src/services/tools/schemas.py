"""Argument models for the support tools.

Field names are snake_case in Python and camelCase on the wire (the names the
provider sees in the tool catalog). Unknown fields are rejected.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


_CUSTOMER_ID_HINT = "customerId is the first name of customer in small case."


class ToolArgs(BaseModel):
    model_config = ConfigDict(
        extra="forbid", alias_generator=to_camel, populate_by_name=True
    )


class FetchCustomerProfileArgs(ToolArgs):
    customer_id: str | None = Field(
        default=None,
        description=f"Customer identifier if already known. {_CUSTOMER_ID_HINT}",
    )
    customer_email: str | None = Field(
        default=None, description="Customer email to look up if id is unknown."
    )


class FetchRecentOrdersArgs(ToolArgs):
    customer_id: str | None = Field(
        default=None,
        description=f"Customer identifier if available. {_CUSTOMER_ID_HINT}",
    )
    customer_email: str | None = Field(
        default=None,
        description="Email address to resolve the customer when id is unknown.",
    )
    limit: int = Field(
        default=5,
        description="Maximum number of orders to return (default 5, max 20).",
    )


class CreateSupportTicketArgs(ToolArgs):
    subject: str = Field(
        min_length=1, description="Short summary of the problem or request."
    )
    description: str = Field(
        min_length=1, description="Detailed description of the customer issue."
    )
    customer_email: str | None = Field(
        default=None,
        description="Customer contact email address (required if customerId unavailable).",
    )
    customer_id: str | None = Field(
        default=None,
        description=f"Customer identifier if already known. {_CUSTOMER_ID_HINT}",
    )
    priority: str = Field(
        default="normal",
        description="Ticket priority such as 'low', 'normal', 'high', or 'urgent'.",
    )
    order_id: str | None = Field(
        default=None, description="Related order or subscription ID if known."
    )


class UpdateTicketStatusArgs(ToolArgs):
    ticket_id: str = Field(
        min_length=1, description="Identifier of the ticket to update."
    )
    status: str = Field(
        min_length=1,
        description="New status value, e.g. 'open', 'in_progress', 'resolved', or 'closed'.",
    )
    internal_notes: str | None = Field(
        default=None,
        description="Optional internal note to append to the ticket history.",
    )


class GetTicketDetailsArgs(ToolArgs):
    ticket_id: str = Field(
        min_length=1, description="Identifier of the ticket to inspect."
    )
    include_interactions: bool = Field(
        default=True,
        description="Whether to include the last few interaction notes (default true).",
    )


class LogCustomerInteractionArgs(ToolArgs):
    note: str = Field(min_length=1, description="The text of the note to store.")
    ticket_id: str | None = Field(
        default=None,
        description="Optional ticket identifier if the note should be linked to a ticket.",
    )
    sentiment: str | None = Field(
        default=None,
        description="Optional sentiment tag describing the tone of the interaction.",
    )


class EscalateTicketArgs(ToolArgs):
    ticket_id: str | None = Field(
        default=None, description="Ticket identifier tied to the escalation."
    )
    customer_id: str | None = Field(
        default=None,
        description=f"Customer identifier if no ticket exists yet. {_CUSTOMER_ID_HINT}",
    )
    severity: str = Field(
        default="medium",
        description="Severity level such as 'low', 'medium', or 'high'.",
    )
    reason: str | None = Field(
        default=None,
        description="Brief explanation of why the escalation is necessary.",
    )
    metadata: dict[str, Any] | None = Field(
        default=None, description="Additional structured metadata to attach."
    )


class LogChangeEventArgs(ToolArgs):
    entity_type: str = Field(
        min_length=1,
        description="Type of record that changed (order, ticket, subscription, etc.).",
    )
    entity_id: str = Field(
        min_length=1, description="Identifier of the record that changed."
    )
    status: str = Field(
        min_length=1, description="New status or outcome after the change."
    )
    reason: str | None = Field(
        default=None, description="Optional text explaining why the change was made."
    )
    data: dict[str, Any] | None = Field(
        default=None, description="Structured payload with the raw change data."
    )


class RecordAgentEventArgs(ToolArgs):
    # Advertised as required, but a customerId inside ``payload`` is accepted.
    model_config = ConfigDict(json_schema_extra={"required": ["customerId"]})

    customer_id: str | None = Field(
        default=None,
        description=f"Customer identifier tied to the event. {_CUSTOMER_ID_HINT}",
    )
    intent: str | None = Field(
        default=None, description="High-level intent detected for the turn."
    )
    sentiment_label: str | None = Field(
        default=None, description="Sentiment label such as positive/neutral/negative."
    )
    sentiment_score: float | None = Field(
        default=None, description="Optional numeric sentiment confidence."
    )
    urgency: str | None = Field(
        default=None,
        description="Urgency classification derived from the conversation.",
    )
    tasks: dict[str, Any] | list[Any] | None = Field(
        default=None,
        description="JSON structure describing tasks planned or completed.",
    )
    payload: dict[str, Any] | None = Field(
        default=None, description="Raw payload to persist for downstream analytics."
    )
