"""Audit and analytics events written by the agent."""

from __future__ import annotations

from core.exceptions import MissingRequiredField
from crud.support import support_crud
from services.tools.deps import ToolContext
from services.tools.schemas import LogChangeEventArgs, RecordAgentEventArgs


async def tool_log_change_event(ctx: ToolContext, args: LogChangeEventArgs) -> str:
    async with ctx.deps.session_factory() as db:
        await support_crud.create_change_event(
            db,
            entity_type=args.entity_type,
            entity_id=args.entity_id,
            status=args.status,
            made_by=ctx.request.user_id,
            agent_id=ctx.deps.agent_id,
            reason=args.reason,
            data=args.data,
        )
    return (
        f"Change event logged for {args.entity_type} {args.entity_id} "
        f"with status {args.status}."
    )


async def tool_record_agent_event(
    ctx: ToolContext, args: RecordAgentEventArgs
) -> str:
    payload = dict(args.payload or {})
    customer_id = args.customer_id or payload.get("customerId")
    if not customer_id:
        raise MissingRequiredField("record_agent_event requires customerId.")

    payload["source_app_id"] = ctx.request.app_id
    async with ctx.deps.session_factory() as db:
        await support_crud.create_agent_event(
            db,
            customer_id=str(customer_id),
            agent_id=ctx.deps.agent_id,
            channel_name=ctx.request.channel,
            intent=args.intent,
            sentiment_label=args.sentiment_label,
            sentiment_score=args.sentiment_score,
            urgency=args.urgency,
            tasks=args.tasks,
            payload=payload,
        )
    return f"Agent event recorded for customer {customer_id}."
