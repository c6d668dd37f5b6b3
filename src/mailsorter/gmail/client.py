"""Gmail API client implementation.

This module provides the Gmail implementation of :class:`mailsorter.mailbox.Mailbox`.

Notes:
    The Google API client is synchronous. This project wraps those calls using
    `asyncio.to_thread` so the rest of the codebase can remain async-friendly.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

import structlog

from mailsorter.config import Settings
from mailsorter.exceptions import AuthenticationError, ConfigurationError, GmailAPIError
from mailsorter.gmail.parsing import message_to_mail_message
from mailsorter.mailbox import MailboxLabel
from mailsorter.models import MailMessage
from mailsorter.utils import normalize_label_name

logger = structlog.get_logger()

METADATA_HEADERS: tuple[str, ...] = ("From", "To", "Subject", "Date")


class GmailClient:
    """Gmail API client for message and label operations.

    This client handles authentication, message retrieval, label
    management and label mutations on messages. It authenticates on first use.

    The underlying Google API service (httplib2) is not thread-safe, so an
    instance must not be shared by concurrent requests; build one per request.
    """

    def __init__(self, settings: Settings | None = None, *, allow_interactive: bool = True) -> None:
        """Initialize Gmail client.

        Args:
            settings: Application settings. If None, uses default settings.
            allow_interactive: Whether a missing or invalid token may start the
                browser OAuth flow. Servers pass False.
        """
        from mailsorter.config import get_settings

        self.settings = settings or get_settings()
        self._service: Any | None = None
        self.allow_interactive = allow_interactive
        logger.info("gmail_client_initialized")

    async def authenticate(self) -> None:
        """Authenticate with Gmail API using OAuth2.

        Raises:
            ConfigurationError: If the credentials file is missing.
            AuthenticationError: If authentication fails, or no valid token exists
                and interactive authentication is disabled.
        """

        if self._service is not None:
            return

        credentials_path = Path(self.settings.gmail_credentials_path)
        token_path = Path(self.settings.gmail_token_path)
        scope = self.settings.gmail_scope

        if not credentials_path.exists():
            raise ConfigurationError(
                f"Gmail credentials file not found: {credentials_path}. "
                "See README.md -> Gmail API Setup."
            )

        logger.info(
            "gmail_authentication_started",
            credentials_path=str(credentials_path),
            token_path=str(token_path),
            scope=scope,
        )

        try:
            self._service = await asyncio.to_thread(
                self._build_service,
                credentials_path,
                token_path,
                scope,
            )
        except AuthenticationError:
            raise
        except Exception as exc:  # noqa: BLE001
            logger.exception("gmail_authentication_failed", error=str(exc))
            raise AuthenticationError(str(exc)) from exc

        logger.info("gmail_authentication_completed")

    async def list_messages(
        self,
        max_results: int | None = None,
        query: str | None = None,
    ) -> list[dict[str, Any]]:
        """List message stubs ({"id", "threadId"}) matching a Gmail query.

        Raises:
            GmailAPIError: If the API request fails.
        """

        await self._ensure_authenticated()

        logger.info("listing_messages", max_results=max_results or "all", query=query)

        try:
            return await asyncio.to_thread(self._list_messages_sync, max_results, query)
        except Exception as exc:  # noqa: BLE001
            logger.exception("gmail_list_messages_failed", error=str(exc))
            raise GmailAPIError(str(exc)) from exc

    async def get_message(self, message_id: str, *, format: str = "metadata") -> MailMessage:
        """Get a specific message by ID.

        Args:
            message_id: The Gmail message ID.
            format: "metadata" (headers and snippet) or "full" (adds the body).

        Raises:
            GmailAPIError: If the API request fails.
        """

        await self._ensure_authenticated()

        logger.debug("getting_message", message_id=message_id, format=format)

        try:
            raw = await asyncio.to_thread(self._get_message_sync, message_id, format)
        except Exception as exc:  # noqa: BLE001
            logger.exception("gmail_get_message_failed", message_id=message_id, error=str(exc))
            raise GmailAPIError(str(exc)) from exc
        return message_to_mail_message(raw)

    async def modify_message(
        self,
        message_id: str,
        *,
        add_label_ids: list[str] | None = None,
        remove_label_ids: list[str] | None = None,
    ) -> None:
        """Add and/or remove label IDs on a message.

        Gmail treats adding a present label or removing an absent one as a no-op,
        so repeating a modification succeeds.

        Raises:
            GmailAPIError: If the API request fails.
        """

        await self._ensure_authenticated()

        body = {
            "addLabelIds": list(add_label_ids or []),
            "removeLabelIds": list(remove_label_ids or []),
        }
        logger.info("modifying_message", message_id=message_id, **body)

        try:
            await asyncio.to_thread(self._modify_message_sync, message_id, body)
        except Exception as exc:  # noqa: BLE001
            logger.warning("gmail_modify_message_failed", message_id=message_id, error=str(exc))
            raise GmailAPIError(str(exc)) from exc

    async def list_labels(self) -> list[MailboxLabel]:
        """List all labels (system and user) of the mailbox.

        Raises:
            GmailAPIError: If the API request fails.
        """

        await self._ensure_authenticated()

        try:
            raw = await asyncio.to_thread(self._list_labels_sync)
        except Exception as exc:  # noqa: BLE001
            logger.exception("gmail_list_labels_failed", error=str(exc))
            raise GmailAPIError(str(exc)) from exc

        return [
            MailboxLabel(id=str(label["id"]), name=str(label["name"]))
            for label in raw
            if label.get("id") and label.get("name")
        ]

    async def create_label(self, name: str) -> str:
        """Create a user label and return its ID.

        Creating a label whose name already exists returns the existing ID. A 409
        from a concurrent creation is treated the same way.

        Raises:
            GmailAPIError: If the label can be neither found nor created.
        """

        existing = await self._find_label_id(name)
        if existing:
            logger.info("gmail_label_linked_existing", name=name, label_id=existing)
            return existing

        try:
            created = await asyncio.to_thread(self._create_label_sync, name)
        except Exception as exc:  # noqa: BLE001
            if _http_status(exc) == 409:
                existing = await self._find_label_id(name)
                if existing:
                    logger.info("gmail_label_conflict_linked", name=name, label_id=existing)
                    return existing
            logger.exception("gmail_create_label_failed", name=name, error=str(exc))
            raise GmailAPIError(str(exc)) from exc

        label_id = str(created.get("id") or "")
        if not label_id:
            raise GmailAPIError(f"Gmail returned no id for created label {name!r}")

        logger.info("gmail_label_created", name=name, label_id=label_id)
        return label_id

    async def _find_label_id(self, name: str) -> str | None:
        wanted = normalize_label_name(name)
        for label in await self.list_labels():
            if normalize_label_name(label.name) == wanted:
                return label.id
        return None

    async def _ensure_authenticated(self) -> None:
        if self._service is None:
            await self.authenticate()

    def _build_service(self, credentials_path: Path, token_path: Path, scope: str) -> Any:
        # Imported lazily to keep import-time cost low and tests fast.
        from google.auth.transport.requests import Request
        from google.oauth2.credentials import Credentials
        from google_auth_oauthlib.flow import InstalledAppFlow
        from googleapiclient.discovery import build

        creds: Credentials | None = None
        if token_path.exists():
            creds = Credentials.from_authorized_user_file(str(token_path), scopes=[scope])

        if creds is not None and creds.expired and creds.refresh_token:
            creds.refresh(Request())
            token_path.write_text(creds.to_json(), encoding="utf-8")

        if creds is None or not creds.valid:
            if not self.allow_interactive:
                raise AuthenticationError(
                    f"Gmail token missing or invalid at {token_path} and interactive auth is disabled. "
                    "Run `mailsorter gmail-auth` once to create it."
                )
            flow = InstalledAppFlow.from_client_secrets_file(str(credentials_path), scopes=[scope])
            creds = flow.run_local_server(port=0)
            token_path.parent.mkdir(parents=True, exist_ok=True)
            token_path.write_text(creds.to_json(), encoding="utf-8")

        # cache_discovery=False prevents writing discovery docs to disk.
        return build("gmail", "v1", credentials=creds, cache_discovery=False)

    def _list_messages_sync(self, max_results: int | None, query: str | None) -> list[dict[str, Any]]:
        assert self._service is not None
        user_id = self.settings.gmail_user_id
        messages: list[dict[str, Any]] = []

        page_token: str | None = None
        while True:
            if max_results is not None and len(messages) >= max_results:
                break

            remaining = None if max_results is None else max_results - len(messages)
            per_page = 500 if remaining is None else min(500, remaining)

            request = (
                self._service.users()
                .messages()
                .list(userId=user_id, maxResults=per_page, q=query, pageToken=page_token)
            )
            response = request.execute()
            messages.extend(response.get("messages", []) or [])
            page_token = response.get("nextPageToken")
            if page_token is None:
                break

        return messages if max_results is None else messages[:max_results]

    def _get_message_sync(self, message_id: str, format: str) -> dict[str, Any]:
        assert self._service is not None
        kwargs: dict[str, Any] = {
            "userId": self.settings.gmail_user_id,
            "id": message_id,
            "format": format,
        }
        if format == "metadata":
            kwargs["metadataHeaders"] = list(METADATA_HEADERS)
        return self._service.users().messages().get(**kwargs).execute()

    def _modify_message_sync(self, message_id: str, body: dict[str, list[str]]) -> None:
        assert self._service is not None
        (
            self._service.users()
            .messages()
            .modify(userId=self.settings.gmail_user_id, id=message_id, body=body)
            .execute()
        )

    def _list_labels_sync(self) -> list[dict[str, Any]]:
        assert self._service is not None
        response = self._service.users().labels().list(userId=self.settings.gmail_user_id).execute()
        return response.get("labels", []) or []

    def _create_label_sync(self, name: str) -> dict[str, Any]:
        assert self._service is not None
        body = {
            "name": name,
            "labelListVisibility": "labelShow",
            "messageListVisibility": "show",
        }
        return (
            self._service.users()
            .labels()
            .create(userId=self.settings.gmail_user_id, body=body)
            .execute()
        )


def _http_status(err: Exception) -> int | None:
    resp = getattr(err, "resp", None)
    status = getattr(resp, "status", None)
    try:
        return int(status) if status is not None else None
    except (TypeError, ValueError):
        return None
