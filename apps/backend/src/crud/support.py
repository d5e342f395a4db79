"""Persistence for the support tools (customers, orders, tickets, audit logs)."""

from __future__ import annotations

from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models.agent_events import AgentEvent
from models.base import utcnow
from models.change_events import ChangeEvent
from models.customers import Customer
from models.escalations import Escalation
from models.orders import Order
from models.support_interactions import SupportInteraction
from models.support_tickets import SupportTicket


class SupportCRUD:
    """CRUD operations backing the support tool registry."""

    # Customers

    async def get_customer(self, db: AsyncSession, customer_id: str) -> Customer | None:
        return await db.get(Customer, customer_id)

    async def get_customer_by_email(
        self, db: AsyncSession, email: str
    ) -> Customer | None:
        """Find a customer whose profile document carries ``email``."""
        result = await db.execute(
            select(Customer).where(Customer.data["email"].as_string() == email).limit(1)
        )
        return result.scalar_one_or_none()

    async def resolve_customer_id(
        self, db: AsyncSession, customer_id: str | None, customer_email: str | None
    ) -> str | None:
        """Prefer an explicit id; otherwise look the customer up by email."""
        if customer_id:
            return customer_id
        if not customer_email:
            return None
        customer = await self.get_customer_by_email(db, customer_email)
        return customer.id if customer else None

    async def create_customer(
        self, db: AsyncSession, customer_id: str, data: dict[str, Any]
    ) -> Customer:
        customer = Customer(id=customer_id, data=data)
        db.add(customer)
        await db.commit()
        await db.refresh(customer)
        return customer

    # Orders

    async def list_recent_orders(
        self, db: AsyncSession, customer_id: str, limit: int
    ) -> list[Order]:
        """Most recently updated orders first."""
        result = await db.execute(
            select(Order)
            .where(Order.customer_id == customer_id)
            .order_by(Order.updated_at.desc(), Order.id)
            .limit(limit)
        )
        return list(result.scalars().all())

    # Tickets

    async def create_ticket(self, db: AsyncSession, **fields: Any) -> SupportTicket:
        ticket = SupportTicket(**fields)
        db.add(ticket)
        await db.commit()
        await db.refresh(ticket)
        return ticket

    async def get_ticket(self, db: AsyncSession, ticket_id: str) -> SupportTicket | None:
        return await db.get(SupportTicket, ticket_id)

    async def set_ticket_status(
        self,
        db: AsyncSession,
        ticket: SupportTicket,
        status: str,
        *,
        updated_by: str | None,
        updated_channel: str | None,
    ) -> SupportTicket:
        ticket.status = status
        ticket.updated_by = updated_by
        ticket.updated_channel = updated_channel
        ticket.updated_at = utcnow()
        await db.commit()
        await db.refresh(ticket)
        return ticket

    # Interactions

    async def add_interaction(
        self, db: AsyncSession, **fields: Any
    ) -> SupportInteraction:
        interaction = SupportInteraction(**fields)
        db.add(interaction)
        await db.commit()
        await db.refresh(interaction)
        return interaction

    async def list_interactions(
        self, db: AsyncSession, ticket_id: str, limit: int = 5
    ) -> list[SupportInteraction]:
        """Newest interactions for a ticket."""
        result = await db.execute(
            select(SupportInteraction)
            .where(SupportInteraction.ticket_id == ticket_id)
            .order_by(SupportInteraction.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    # Audit trail

    async def create_escalation(self, db: AsyncSession, **fields: Any) -> Escalation:
        escalation = Escalation(**fields)
        db.add(escalation)
        await db.commit()
        await db.refresh(escalation)
        return escalation

    async def create_change_event(
        self, db: AsyncSession, **fields: Any
    ) -> ChangeEvent:
        event = ChangeEvent(**fields)
        db.add(event)
        await db.commit()
        return event

    async def create_agent_event(self, db: AsyncSession, **fields: Any) -> AgentEvent:
        event = AgentEvent(**fields)
        db.add(event)
        await db.commit()
        return event


# Create singleton instance
support_crud = SupportCRUD()
