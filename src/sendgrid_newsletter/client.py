"""SendGrid Newsletter API client."""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import Any

import httpx

from .connect import DEFAULT_ENDPOINT, TIMEOUT, Connector
from .exceptions import (
    ConfigurationError,
    DecodeError,
    MissingFieldError,
    NotFoundError,
    SendGridError,
    ValidationError,
)
from .result import Result

log = logging.getLogger(__name__)

MAX_RECIPIENTS_PER_REQUEST = 1000

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off"}


class SendGridClient:
    """Client for the SendGrid newsletter (Marketing Email) API.

    Every operation returns a ``Result``; failures are never raised. The error
    of the most recent call is also available as ``client.last_error``.

    Example:
        ```python
        from sendgrid_newsletter import SendGridClient

        client = SendGridClient(api_user="your-username", api_key="your-api-key")

        # Create a recipient list and fill it
        client.lists.add("customers")
        inserted = client.list_emails.add_many(
            "customers",
            [
                {"email": "a@example.com", "name": "Ann"},
                {"email": "b@example.com", "name": "Bob"},
            ],
        )

        # Create and schedule a newsletter
        result = client.newsletters.add(
            identity="marketing",
            name="Spring sale",
            subject="Spring is here",
            text="Hello",
            html="<p>Hello</p>",
        )
        if not result.ok:
            print(client.last_error_message)
        client.recipients.add("Spring sale", "customers")
        client.schedules.add("Spring sale", after=30)
        ```
    """

    def __init__(
        self,
        api_user: str,
        api_key: str,
        *,
        endpoint: str = DEFAULT_ENDPOINT,
        debug: bool = False,
        verify_ssl: bool = True,
        timeout: float = TIMEOUT,
        transport: httpx.BaseTransport | None = None,
        logger: logging.Logger | None = None,
    ):
        """Initialize the SendGrid client.

        Args:
            api_user: SendGrid account username.
            api_key: SendGrid API key or password.
            endpoint: Base URL of the API.
            debug: Log call parameters and responses at DEBUG level.
            verify_ssl: Set to False to skip TLS certificate checks.
            timeout: Request timeout in seconds.
            transport: Optional httpx transport.
            logger: Logger receiving debug traces.
        """
        self.connector = Connector(
            api_user,
            api_key,
            endpoint=endpoint,
            debug=debug,
            verify_ssl=verify_ssl,
            timeout=timeout,
            transport=transport,
            logger=logger,
        )

        # Resource endpoints
        self.newsletters = NewslettersResource(self.connector)
        self.lists = RecipientListsResource(self.connector)
        self.list_emails = ListEmailsResource(self.connector)
        self.identities = IdentitiesResource(self.connector)
        self.recipients = RecipientsResource(self.connector)
        self.schedules = SchedulesResource(self.connector)

    @classmethod
    def from_env(cls, **kwargs: Any) -> SendGridClient:
        """Build a client from ``SENDGRID_*`` environment variables.

        Reads ``SENDGRID_API_USER``, ``SENDGRID_API_KEY`` and, when set,
        ``SENDGRID_API_ENDPOINT``, ``SENDGRID_DEBUG`` and ``SENDGRID_VERIFY_SSL``.
        Keyword arguments override the environment.

        Raises:
            ConfigurationError: If credentials are missing or a flag is not a boolean.
        """
        api_user = kwargs.pop("api_user", None) or os.getenv("SENDGRID_API_USER")
        api_key = kwargs.pop("api_key", None) or os.getenv("SENDGRID_API_KEY")
        if not api_user:
            raise ConfigurationError("SENDGRID_API_USER is not set")
        if not api_key:
            raise ConfigurationError("SENDGRID_API_KEY is not set")

        endpoint = os.getenv("SENDGRID_API_ENDPOINT")
        if endpoint:
            kwargs.setdefault("endpoint", endpoint)
        for name, option in (("SENDGRID_DEBUG", "debug"), ("SENDGRID_VERIFY_SSL", "verify_ssl")):
            raw = os.getenv(name)
            if raw is not None:
                kwargs.setdefault(option, _parse_flag(name, raw))
        return cls(api_user, api_key, **kwargs)

    @property
    def last_error(self) -> SendGridError | None:
        return self.connector.last_error

    @property
    def last_error_message(self) -> str | None:
        """Message of the most recent call's error, or None."""
        return self.connector.last_error_message

    def set_endpoint(self, endpoint: str) -> None:
        self.connector.set_endpoint(endpoint)

    def close(self) -> None:
        """Close the HTTP client."""
        self.connector.close()

    def __enter__(self) -> SendGridClient:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()


def _parse_flag(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUTHY:
        return True
    if value in _FALSY:
        return False
    raise ConfigurationError(f"{name} must be a boolean, got {raw!r}")


def _encode_record(record: Mapping[str, Any]) -> str:
    return json.dumps(record, separators=(",", ":"))


def _count(connector: Connector, result: Result[Any], field: str) -> Result[int]:
    """Pick a count field out of a successful response."""
    if not result.ok:
        return result
    payload = result.value
    if not isinstance(payload, Mapping) or payload.get(field) is None:
        return connector.fail(MissingFieldError(field))
    value = payload[field]
    try:
        if isinstance(value, bool):
            raise TypeError(field)
        return Result.success(int(value))
    except (TypeError, ValueError):
        return connector.fail(DecodeError(f"Response field '{field}' is not a count: {value!r}"))


class NewslettersResource:
    """Newsletters API resource."""

    def __init__(self, connector: Connector):
        self._connector = connector

    def add(self, identity: str, name: str, subject: str, text: str, html: str) -> Result[Any]:
        """Create a newsletter.

        Args:
            identity: Identity used to send the newsletter.
            name: Newsletter name.
            subject: Email subject.
            text: Plain-text body.
            html: HTML body.

        Returns:
            Result with the API response.
        """
        data = {
            "identity": identity,
            "name": name,
            "subject": subject,
            "text": text,
            "html": html,
        }
        return self._connector.call("newsletter/add", data)

    def edit(
        self,
        identity: str,
        name: str,
        newname: str,
        subject: str,
        text: str,
        html: str,
    ) -> Result[Any]:
        """Edit an existing newsletter.

        Args:
            identity: New identity for the newsletter.
            name: Name of the newsletter to edit.
            newname: New name for the newsletter.
            subject: New subject.
            text: New plain-text body.
            html: New HTML body.

        Returns:
            Result with the API response.
        """
        data = {
            "identity": identity,
            "name": name,
            "newname": newname,
            "subject": subject,
            "text": text,
            "html": html,
        }
        return self._connector.call("newsletter/edit", data)

    def get(self, name: str) -> Result[Any]:
        """Get the content of a newsletter."""
        return self._connector.call("newsletter/get", {"name": name})

    def delete(self, name: str) -> Result[Any]:
        """Delete a newsletter.

        Deleting a newsletter that does not exist is not a failure.
        """
        return self._connector.call("newsletter/delete", {"name": name})

    def list(self, name: str | None = None) -> Result[Any]:
        """List newsletters, or check whether one named ``name`` exists."""
        return self._connector.call("newsletter/list", {"name": name})


class RecipientListsResource:
    """Recipient lists API resource."""

    def __init__(self, connector: Connector):
        self._connector = connector

    def add(self, list: str, name: str | None = None) -> Result[Any]:
        """Create a recipient list.

        Args:
            list: List name.
            name: Column name holding the contact name.

        Returns:
            Result with the API response.
        """
        return self._connector.call("newsletter/lists/add", {"list": list, "name": name})

    def edit(self, list: str, newlist: str) -> Result[Any]:
        """Rename a recipient list."""
        return self._connector.call("newsletter/lists/edit", {"list": list, "newlist": newlist})

    def get(self, list: str | None = None) -> Result[Any]:
        """Get one recipient list, or all of them when ``list`` is omitted."""
        return self._connector.call("newsletter/lists/get", {"list": list})

    def delete(self, list: str) -> Result[Any]:
        return self._connector.call("newsletter/lists/delete", {"list": list})


class ListEmailsResource:
    """Recipient list membership API resource.

    Records are mappings that must hold ``email`` and ``name``; any other
    keys become extra columns of the list.
    """

    def __init__(self, connector: Connector):
        self._connector = connector

    def add(self, list: str, data: Mapping[str, Any]) -> Result[int]:
        """Add one record to a recipient list.

        Args:
            list: Recipient list name.
            data: Record, e.g. ``{"email": "a@example.com", "name": "Ann"}``.

        Returns:
            Result with the number of inserted records.
        """
        result = self._connector.call(
            "newsletter/lists/email/add",
            {"list": list, "data": _encode_record(data)},
        )
        return _count(self._connector, result, "inserted")

    def add_many(self, list: str, records: Sequence[Mapping[str, Any]]) -> Result[int]:
        """Add up to 1000 records to a recipient list in one request.

        Args:
            list: Recipient list name.
            records: Records to add.

        Returns:
            Result with the number of inserted records.
        """
        if not records:
            return self._connector.fail(ValidationError("No records to add"))
        if len(records) > MAX_RECIPIENTS_PER_REQUEST:
            return self._connector.fail(
                ValidationError(
                    f"At most {MAX_RECIPIENTS_PER_REQUEST} records per request, got {len(records)}"
                )
            )
        result = self._connector.call(
            "newsletter/lists/email/add",
            {"list": list, "data": [_encode_record(record) for record in records]},
        )
        return _count(self._connector, result, "inserted")

    def edit(self, list: str, email: str, data: Mapping[str, Any]) -> Result[int]:
        """Replace the record for ``email`` in a recipient list.

        The API has no edit call, so this fetches the current record, deletes
        it and adds ``data``. If the add fails the original record is added
        back and the add failure is returned. The sequence is not atomic: if
        the process stops after the delete, the record stays deleted.

        Args:
            list: Recipient list name.
            email: Email of the record to replace.
            data: New record.

        Returns:
            Result with the number of inserted records.
        """
        current = self.get(list, email)
        if not current.ok:
            return current
        if not current.value:
            return self._connector.fail(NotFoundError(f"{email} is not in list {list}"))
        original = current.value if isinstance(current.value, Mapping) else current.value[0]

        removed = self.delete(list, email)
        if not removed.ok:
            return removed

        added = self.add(list, data)
        if not added.ok:
            restored = self.add(list, original)
            if not restored.ok:
                log.warning(
                    "Could not restore %s in list %s after a failed edit: %s",
                    email,
                    list,
                    restored.error.message if restored.error else "unknown error",
                )
            # Report the add failure, not the restore outcome.
            self._connector.fail(added.error)
        return added

    def get(self, list: str, email: str | Sequence[str] | None = None) -> Result[Any]:
        """Get the records of a recipient list, optionally only for ``email``."""
        return self._connector.call("newsletter/lists/email/get", {"list": list, "email": email})

    def delete(self, list: str, email: str | Sequence[str]) -> Result[int]:
        """Remove one or more emails from a recipient list.

        Returns:
            Result with the number of removed records (0 if none matched).
        """
        result = self._connector.call(
            "newsletter/lists/email/delete",
            {"list": list, "email": email},
        )
        return _count(self._connector, result, "removed")


class IdentitiesResource:
    """Sender identities API resource."""

    def __init__(self, connector: Connector):
        self._connector = connector

    def add(
        self,
        identity: str,
        name: str,
        email: str,
        address: str,
        city: str,
        state: str,
        zip: str,
        country: str,
    ) -> Result[Any]:
        """Create an identity.

        Args:
            identity: Identity name.
            name: Sender name.
            email: Sender email address.
            address: Street address.
            city: City.
            state: State code.
            zip: Zip code.
            country: Country code.

        Returns:
            Result with the API response.
        """
        data = {
            "identity": identity,
            "name": name,
            "email": email,
            "address": address,
            "city": city,
            "state": state,
            "zip": zip,
            "country": country,
        }
        return self._connector.call("newsletter/identity/add", data)

    def edit(
        self,
        identity: str,
        newidentity: str,
        name: str,
        email: str,
        address: str,
        city: str,
        state: str,
        zip: str,
        country: str,
    ) -> Result[Any]:
        """Edit an identity; ``newidentity`` renames it."""
        data = {
            "identity": identity,
            "newidentity": newidentity,
            "name": name,
            "email": email,
            "address": address,
            "city": city,
            "state": state,
            "zip": zip,
            "country": country,
        }
        return self._connector.call("newsletter/identity/edit", data)

    def get(self, identity: str) -> Result[Any]:
        return self._connector.call("newsletter/identity/get", {"identity": identity})

    def list(self, identity: str | None = None) -> Result[Any]:
        """List identities, or check whether ``identity`` exists."""
        return self._connector.call("newsletter/identity/list", {"identity": identity})

    def delete(self, identity: str) -> Result[Any]:
        return self._connector.call("newsletter/identity/delete", {"identity": identity})


class RecipientsResource:
    """Recipient lists attached to a newsletter."""

    def __init__(self, connector: Connector):
        self._connector = connector

    def add(self, name: str, list: str | Sequence[str]) -> Result[Any]:
        """Attach one or more recipient lists to a newsletter."""
        return self._connector.call("newsletter/recipients/add", {"name": name, "list": list})

    def get(self, name: str) -> Result[Any]:
        return self._connector.call("newsletter/recipients/get", {"name": name})

    def delete(self, name: str, list: str | Sequence[str]) -> Result[Any]:
        """Detach recipient lists from a newsletter."""
        return self._connector.call("newsletter/recipients/delete", {"name": name, "list": list})


class SchedulesResource:
    """Newsletter delivery schedule API resource."""

    def __init__(self, connector: Connector):
        self._connector = connector

    def add(
        self,
        name: str,
        at: datetime | str | None = None,
        after: int | None = None,
    ) -> Result[Any]:
        """Schedule delivery of a newsletter.

        Without ``at`` or ``after`` the newsletter is sent immediately.

        Args:
            name: Newsletter name.
            at: Delivery time, a timezone-aware datetime. Strings must already be ISO 8601
                (``YYYY-MM-DD HH:MM:SS+HH:MM``).
            after: Minutes until delivery, a positive integer.

        Returns:
            Result with the API response.
        """
        if after is not None and (
            isinstance(after, bool) or not isinstance(after, int) or after <= 0
        ):
            return self._connector.fail(
                ValidationError(f"after must be a positive integer, got {after!r}")
            )
        if isinstance(at, datetime):
            if at.utcoffset() is None:
                return self._connector.fail(ValidationError("at must be a timezone-aware datetime"))
            at = at.isoformat(sep=" ", timespec="seconds")
        return self._connector.call("newsletter/schedule/add", {"name": name, "at": at, "after": after})

    def get(self, name: str) -> Result[Any]:
        """Get the scheduled delivery time of a newsletter."""
        return self._connector.call("newsletter/schedule/get", {"name": name})

    def delete(self, name: str) -> Result[Any]:
        """Cancel the scheduled delivery of a newsletter."""
        return self._connector.call("newsletter/schedule/delete", {"name": name})
