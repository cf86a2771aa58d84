"""Authenticated transport for the SendGrid v2 newsletter API."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

import httpx

from ._version import __version__
from .exceptions import DecodeError, RemoteError, SendGridError, TransportError
from .result import Result

DEFAULT_ENDPOINT = "https://api.sendgrid.com/api"
USER_AGENT = f"sendgrid-newsletter-python/{__version__}"
TIMEOUT = 20.0

CREDENTIAL_FIELDS = ("api_user", "api_key")

log = logging.getLogger("sendgrid_newsletter")


def form_fields(parameters: Mapping[str, Any]) -> dict[str, Any]:
    """Flatten parameters into form fields for ``httpx``'s ``data=`` encoder.

    Sequences become one ``field[]`` key holding every item; the API rejects
    indexed keys such as ``field[0]``. Mappings become ``field[key]`` keys.
    ``None`` values are left out and booleans are sent as ``1``/``0``.

    Example:
        >>> form_fields({"list": "news", "email": ["a@b.com", "c@d.com"]})
        {'list': 'news', 'email[]': ['a@b.com', 'c@d.com']}
    """
    fields: dict[str, Any] = {}
    for key, value in parameters.items():
        _flatten(str(key), value, fields)
    return fields


def _flatten(key: str, value: Any, fields: dict[str, Any]) -> None:
    if value is None:
        return
    if isinstance(value, Mapping):
        for sub_key, sub_value in value.items():
            _flatten(f"{key}[{sub_key}]", sub_value, fields)
    elif isinstance(value, (list, tuple)):
        for item in value:
            _flatten(f"{key}[]", item, fields)
    else:
        text = ("1" if value else "0") if isinstance(value, bool) else str(value)
        if key.endswith("[]"):
            fields.setdefault(key, []).append(text)
        else:
            fields[key] = text


def _redact(parameters: Mapping[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in parameters.items() if k not in CREDENTIAL_FIELDS}


class Connector:
    """Performs one signed API call at a time and remembers the last error.

    Every call clears the last error before the request goes out, so a
    successful call always leaves ``last_error`` as ``None``.

    Example:
        ```python
        from sendgrid_newsletter import Connector

        connector = Connector(api_user="user", api_key="secret")
        result = connector.call("newsletter/list")
        if not result.ok:
            print(connector.last_error_message)
        ```
    """

    def __init__(
        self,
        api_user: str,
        api_key: str,
        endpoint: str = DEFAULT_ENDPOINT,
        debug: bool = False,
        verify_ssl: bool = True,
        timeout: float = TIMEOUT,
        transport: httpx.BaseTransport | None = None,
        logger: logging.Logger | None = None,
    ):
        """Initialize the connector.

        Args:
            api_user: SendGrid account username.
            api_key: SendGrid API key or password.
            endpoint: Base URL of the API.
            debug: Trace parameters and responses to the logger.
            verify_ssl: Set to False to skip TLS certificate checks (local development).
            timeout: Request timeout in seconds.
            transport: Optional httpx transport, e.g. ``httpx.MockTransport`` in tests.
            logger: Logger receiving debug traces. Defaults to ``sendgrid_newsletter``.
        """
        self.api_user = api_user
        self.api_key = api_key
        self.endpoint = endpoint.rstrip("/")
        self.debug = debug
        self.verify_ssl = verify_ssl
        self._logger = logger or log
        self._last_error: SendGridError | None = None

        self._client = httpx.Client(
            headers={
                "User-Agent": USER_AGENT,
                "Accept-Encoding": "gzip, deflate",
            },
            timeout=timeout,
            verify=verify_ssl,
            transport=transport,
        )

    @property
    def last_error(self) -> SendGridError | None:
        """Error of the most recent call, or None if it succeeded."""
        return self._last_error

    @property
    def last_error_message(self) -> str | None:
        return self._last_error.message if self._last_error is not None else None

    def set_endpoint(self, endpoint: str) -> None:
        """Point the connector at a custom API deployment."""
        self.endpoint = endpoint.rstrip("/")

    def url_for(self, path: str) -> str:
        return f"{self.endpoint}/{path}.json"

    def call(
        self,
        path: str,
        parameters: Mapping[str, Any] | None = None,
        method: str = "POST",
    ) -> Result[Any]:
        """Make an API call.

        Args:
            path: Resource path relative to the endpoint, e.g. ``newsletter/add``.
            parameters: Form fields for the call. Credentials are added here.
            method: HTTP method.

        Returns:
            The decoded response on success, otherwise a failure carrying a
            ``RemoteError``, ``TransportError`` or ``DecodeError``.
        """
        self._last_error = None

        data = dict(parameters or {})
        data["api_user"] = self.api_user
        data["api_key"] = self.api_key
        self._trace("Post data", _redact(data))

        try:
            response = self._client.request(
                method=method.upper(),
                url=self.url_for(path),
                data=form_fields(data),
            )
        except httpx.HTTPError as exc:
            return self.fail(TransportError(f"Request to {path} failed: {exc}"))

        self._trace("Json response", response.text)
        return self._handle_response(response)

    def _handle_response(self, response: httpx.Response) -> Result[Any]:
        """Decode the response body and pick out a remote error."""
        status = response.status_code
        if not response.content:
            return self.fail(DecodeError(f"Empty response body (status {status})", status_code=status))
        try:
            results = response.json()
        except ValueError:
            return self.fail(
                DecodeError(f"Response is not valid JSON (status {status})", status_code=status)
            )

        self._trace("Results", results)

        if not isinstance(results, (dict, list)):
            return self.fail(
                DecodeError(f"Unexpected response type: {type(results).__name__}", status_code=status)
            )
        if isinstance(results, dict) and results.get("error") is not None:
            return self.fail(RemoteError(results["error"], status_code=status))
        return Result.success(results)

    def fail(self, error: SendGridError) -> Result[Any]:
        """Record ``error`` as the last error and return it as a failure."""
        self._last_error = error
        self._trace("Error", error.message)
        return Result.failure(error)

    def _trace(self, label: str, data: Any) -> None:
        if not self.debug:
            return
        self._logger.debug("%s: %s", label, data)

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self) -> Connector:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()
