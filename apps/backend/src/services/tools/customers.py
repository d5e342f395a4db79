"""Read-only customer lookups: profile and recent orders."""

from __future__ import annotations

import json
from typing import Any

from core.exceptions import MissingRequiredField
from crud.support import support_crud
from models.base import utcnow
from models.orders import Order
from services.tools.deps import ToolContext
from services.tools.schemas import FetchCustomerProfileArgs, FetchRecentOrdersArgs


MAX_ORDERS = 20


def _order_summary(order: Order) -> dict[str, Any]:
    data = order.data or {}
    summary: dict[str, Any] = {
        "orderId": order.id,
        "status": data.get("status"),
        "summary": data.get("summary") or data.get("description"),
        "total": data.get("total"),
        "currency": data.get("currency") or data.get("currency_code"),
        "updatedAt": order.updated_at.isoformat() if order.updated_at else None,
    }
    if isinstance(data.get("items"), list):
        summary["lineItems"] = data["items"]
    return summary


async def tool_fetch_customer_profile(
    ctx: ToolContext, args: FetchCustomerProfileArgs
) -> str:
    """Return the customer's profile document as pretty-printed JSON."""
    async with ctx.deps.session_factory() as db:
        customer_id = await support_crud.resolve_customer_id(
            db, args.customer_id, args.customer_email
        )
        if not customer_id:
            raise MissingRequiredField(
                "fetch_customer_profile requires customerId or customerEmail."
            )
        customer = await support_crud.get_customer(db, customer_id)

    if customer is None:
        return f"No customer found with id {customer_id}."
    return f"Customer {customer.id} profile:\n{json.dumps(customer.data, indent=2)}"


async def tool_fetch_recent_orders(
    ctx: ToolContext, args: FetchRecentOrdersArgs
) -> str:
    """Return the newest orders as a JSON document the assistant can echo.

    Without an id or email the caller's user id is taken as the customer id,
    so "where is my order?" works before the customer has identified
    themselves further.
    """
    limit = max(1, min(MAX_ORDERS, args.limit))
    async with ctx.deps.session_factory() as db:
        customer_id = await support_crud.resolve_customer_id(
            db, args.customer_id, args.customer_email
        )
        if not customer_id and not args.customer_email:
            customer_id = ctx.request.user_id
        if not customer_id:
            return f"No customer found with email {args.customer_email}."
        orders = await support_crud.list_recent_orders(db, customer_id, limit)

    return json.dumps(
        {
            "type": "orders",
            "customerId": customer_id,
            "generatedAt": utcnow().isoformat(),
            "orders": [_order_summary(order) for order in orders],
        }
    )
