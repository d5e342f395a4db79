from __future__ import annotations

from crud.support import support_crud
from services.tools.deps import ToolContext
from services.tools.schemas import LogCustomerInteractionArgs


async def tool_log_customer_interaction(
    ctx: ToolContext, args: LogCustomerInteractionArgs
) -> str:
    """Persist an interaction note, linked to a ticket when one is given."""
    request = ctx.request
    async with ctx.deps.session_factory() as db:
        interaction = await support_crud.add_interaction(
            db,
            ticket_id=args.ticket_id,
            note=args.note,
            sentiment=args.sentiment,
            channel=request.channel,
            user_id=request.user_id,
            app_id=request.app_id,
        )

    suffix = f" for ticket {args.ticket_id}" if args.ticket_id else ""
    return f"Interaction {interaction.id} logged{suffix}."
