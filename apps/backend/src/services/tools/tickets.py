"""Support ticket tools: create, update status, inspect."""

from __future__ import annotations

import json

from core.exceptions import MissingRequiredField, NotFound
from crud.support import support_crud
from models.base import utcnow
from services.tools.deps import ToolContext
from services.tools.schemas import (
    CreateSupportTicketArgs,
    GetTicketDetailsArgs,
    UpdateTicketStatusArgs,
)


RECENT_INTERACTIONS = 5


async def tool_create_support_ticket(
    ctx: ToolContext, args: CreateSupportTicketArgs
) -> str:
    """Open a ticket; an unknown email is seeded as a placeholder customer."""
    if not args.customer_email and not args.customer_id:
        raise MissingRequiredField(
            "create_support_ticket requires customerEmail or customerId."
        )

    request = ctx.request
    async with ctx.deps.session_factory() as db:
        customer_id = await support_crud.resolve_customer_id(
            db, args.customer_id, args.customer_email
        )
        if not customer_id and args.customer_email:
            placeholder = await support_crud.create_customer(
                db, args.customer_email, {"email": args.customer_email}
            )
            customer_id = placeholder.id

        email = args.customer_email
        if not email and customer_id:
            customer = await support_crud.get_customer(db, customer_id)
            email = customer.email if customer else None
        if not email:
            raise MissingRequiredField(
                "Unable to determine customer email for ticket."
            )

        ticket = await support_crud.create_ticket(
            db,
            subject=args.subject,
            description=args.description,
            customer_email=email,
            customer_id=customer_id,
            priority=args.priority,
            order_id=args.order_id,
            channel=request.channel,
            user_id=request.user_id,
            app_id=request.app_id,
            status="open",
        )

    return f"Support ticket {ticket.id} created with priority {ticket.priority}."


async def tool_update_ticket_status(
    ctx: ToolContext, args: UpdateTicketStatusArgs
) -> str:
    request = ctx.request
    async with ctx.deps.session_factory() as db:
        ticket = await support_crud.get_ticket(db, args.ticket_id)
        if ticket is None:
            raise NotFound(f"Ticket {args.ticket_id} not found.")

        await support_crud.set_ticket_status(
            db,
            ticket,
            args.status,
            updated_by=request.user_id,
            updated_channel=request.channel,
        )
        if args.internal_notes:
            await support_crud.add_interaction(
                db,
                ticket_id=ticket.id,
                note=args.internal_notes,
                channel=request.channel,
                user_id=request.user_id,
                app_id=request.app_id,
            )

    return f"Ticket {args.ticket_id} updated to status {args.status}."


async def tool_get_ticket_details(
    ctx: ToolContext, args: GetTicketDetailsArgs
) -> str:
    """Ticket summary plus its latest interactions, as a JSON document."""
    async with ctx.deps.session_factory() as db:
        ticket = await support_crud.get_ticket(db, args.ticket_id)
        if ticket is None:
            raise NotFound(f"Ticket {args.ticket_id} not found.")
        interactions = (
            await support_crud.list_interactions(db, ticket.id, RECENT_INTERACTIONS)
            if args.include_interactions
            else []
        )

    summary = {
        "ticketId": ticket.id,
        "status": ticket.status,
        "priority": ticket.priority,
        "subject": ticket.subject,
        "summary": ticket.description or ticket.subject or "",
        "customerId": ticket.customer_id,
        "lastUpdated": (ticket.updated_at or ticket.created_at).isoformat(),
    }
    if interactions:
        summary["interactions"] = [
            {
                "id": item.id,
                "createdAt": item.created_at.isoformat(),
                "note": item.note,
                "sentiment": item.sentiment,
            }
            for item in interactions
        ]

    return json.dumps(
        {
            "type": "ticket_details",
            "generatedAt": utcnow().isoformat(),
            "ticket": summary,
        }
    )
