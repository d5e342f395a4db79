"""Shared types handed to every tool handler."""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.email import EscalationNotifier


@dataclass(frozen=True)
class RequestContext:
    """Identity of the turn that triggered a tool call."""

    app_id: str
    user_id: str
    channel: str


@dataclass(frozen=True)
class ToolDeps:
    """Process-wide collaborators, built once at startup."""

    session_factory: async_sessionmaker[AsyncSession]
    agent_id: str
    notifier: EscalationNotifier | None = None


@dataclass(frozen=True)
class ToolContext:
    request: RequestContext
    deps: ToolDeps
