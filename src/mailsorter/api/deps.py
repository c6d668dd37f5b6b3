"""FastAPI dependencies: settings, storage, remote clients and the per-request agent."""

from __future__ import annotations

from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.engine import Engine

from mailsorter.agent import SortingAgent
from mailsorter.classifier.client import ChatClient, ClassifierClient
from mailsorter.config import Settings
from mailsorter.exceptions import ConfigurationError
from mailsorter.gmail.client import GmailClient
from mailsorter.mailbox import Mailbox

USER_HEADER = "X-User-Email"


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_engine(request: Request) -> Engine:
    return request.app.state.engine


def require_user(x_user_email: str | None = Header(default=None, alias=USER_HEADER)) -> str:
    """Return the caller's tenant key from the identifying header."""
    user = (x_user_email or "").strip()
    if not user:
        raise HTTPException(status_code=401, detail=f"Missing {USER_HEADER} header")
    return user


def get_mailbox(request: Request) -> Mailbox:
    """Return a Gmail client for this request.

    The client authenticates from token.json on first mailbox call, so routes
    that only touch the database never reach Gmail. It is never shared between
    requests and never starts the browser OAuth flow.
    """
    return GmailClient(request.app.state.settings, allow_interactive=False)


def get_classifier(request: Request) -> ChatClient | None:
    """Return the classification client, or None when it is not configured."""
    client = getattr(request.app.state, "classifier", None)
    if client is not None:
        return client
    try:
        client = ClassifierClient(request.app.state.settings)
    except ConfigurationError:
        return None
    request.app.state.classifier = client
    return client


def get_agent(
    user_id: str = Depends(require_user),
    mailbox: Mailbox = Depends(get_mailbox),
    client: ChatClient | None = Depends(get_classifier),
    engine: Engine = Depends(get_engine),
    settings: Settings = Depends(get_app_settings),
) -> SortingAgent:
    return SortingAgent(user_id=user_id, mailbox=mailbox, engine=engine, client=client, settings=settings)
