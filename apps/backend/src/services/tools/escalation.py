"""Escalate a case to a human and notify the support inbox."""

from __future__ import annotations

import json

from core.email import EscalationEmail
from core.error_handler import StructuredLogger
from core.exceptions import MissingRequiredField
from crud.support import support_crud
from services.tools.deps import ToolContext
from services.tools.schemas import EscalateTicketArgs


logger = StructuredLogger(__name__)

DEFAULT_REASON = "Customer issue escalated by assistant."


async def tool_escalate_ticket(ctx: ToolContext, args: EscalateTicketArgs) -> str:
    """Record an escalation and mark the ticket escalated.

    The notification email is spawned in the background; the turn does not
    wait for it and its outcome never changes the returned text.
    """
    if not args.ticket_id and not args.customer_id:
        raise MissingRequiredField(
            "escalate_ticket requires at least a ticketId or customerId."
        )

    request = ctx.request
    reason = args.reason or DEFAULT_REASON
    metadata = args.metadata or {}

    async with ctx.deps.session_factory() as db:
        ticket = (
            await support_crud.get_ticket(db, args.ticket_id) if args.ticket_id else None
        )
        customer_id = args.customer_id or (ticket.customer_id if ticket else None)

        escalation = await support_crud.create_escalation(
            db,
            ticket_id=args.ticket_id,
            customer_id=customer_id,
            status="open",
            severity=args.severity,
            data={
                "reason": reason,
                "metadata": args.metadata,
                "triggered_by": request.user_id,
                "channel": request.channel,
            },
        )
        if ticket is not None:
            await support_crud.set_ticket_status(
                db,
                ticket,
                "escalated",
                updated_by=request.user_id,
                updated_channel=request.channel,
            )

    notifier = ctx.deps.notifier
    if notifier is not None:
        history = metadata.get("conversationHistory") or (
            json.dumps(metadata, indent=2) if metadata else None
        )
        notifier.notify(
            EscalationEmail(
                issue=reason,
                customer_id=customer_id,
                customer_name=metadata.get("customerName") or "Valued Customer",
                customer_email=metadata.get("customerEmail"),
                tier=metadata.get("tier") or args.severity,
                ticket_id=args.ticket_id,
                severity=args.severity,
                conversation_history=history,
                agent_id=request.user_id,
            )
        )
    else:
        logger.info("Escalation notifier not configured; no email dispatched")

    suffix = f" for ticket {args.ticket_id}" if args.ticket_id else ""
    return f"Escalation {escalation.escalation_id} created{suffix}."
