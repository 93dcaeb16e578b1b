"""Asynchronous HTTP communication used by the provider adapters.

This module provides a thin aiohttp wrapper for JSON APIs. It maps transport failures onto a small
exception family so callers can distinguish timeouts, connection failures and HTTP error statuses
without depending on aiohttp types.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any, Final, Literal, Self, TypeAlias

import aiohttp
from aiohttp.client import ClientSession

from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging
    from collections.abc import Callable, Mapping

    from aiohttp.client import ClientResponse


__all__: list[str] = [
    "AsyncCommConnectionError",
    "AsyncCommError",
    "AsyncCommInvalidContentTypeError",
    "AsyncCommStatusError",
    "AsyncCommTimeoutError",
    "AsyncHttp",
]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

HTTPMethod: TypeAlias = Literal["GET", "POST"]

CONNECT_TIMEOUT: Final[float] = 5.0


class AsyncHttp:
    """Asynchronous HTTP client for JSON APIs.

    The aiohttp session is created on first use inside the running event loop and reused until
    ``close()`` is called. Responses are decoded by content type handlers.
    """

    def __init__(self, *, headers: Mapping[str, str] | None = None) -> None:
        """Initialize the AsyncHttp client.

        The default handlers decode ``text/plain`` and ``text/html`` to str and parse ``application/json``.

        Args:
            headers (Mapping[str, str] | None): Headers sent with every request (e.g. authorization).
        """
        self.__session: ClientSession | None = None
        self._default_headers: dict[str, str] = dict(headers or {})
        self.content_handlers: dict[str, Callable[[bytes], Any]] = {}

        self.add_handler("text/plain", lambda x: x.decode("utf-8"))
        self.add_handler("text/html", lambda x: x.decode("utf-8"))
        self.add_handler("application/json", lambda x: json.loads(x.decode("utf-8")))

    async def __aenter__(self) -> Self:
        self.initialize_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        _ = exc_type, exc_val, exc_tb
        await self.close()

    def initialize_session(self) -> None:
        """Create the aiohttp session if there is none or the previous one was closed."""
        if self.__session is None or self.__session.closed:
            self.__session = ClientSession(headers=self._default_headers, raise_for_status=True)
            logger.debug("%s session initialized", self.__class__.__name__)

    @property
    def session(self) -> ClientSession:
        """Get the current aiohttp session, creating it on first use."""
        self.initialize_session()
        if self.__session is None:
            msg = "Session could not be initialized"
            raise RuntimeError(msg)
        return self.__session

    @property
    def is_open(self) -> bool:
        return self.__session is not None and not self.__session.closed

    async def close(self) -> None:
        """Close the aiohttp session if it is open."""
        if self.__session and not self.__session.closed:
            await self.__session.close()
            logger.debug("%s session closed", self.__class__.__name__)
        self.__session = None

    async def get(
        self,
        *,
        url: str,
        params: dict[str, str] | None = None,
        total_timeout: float = 10.0,
    ) -> Any:
        """Perform an asynchronous HTTP GET request.

        Args:
            url (str): The URL to send the GET request to.
            params (dict[str, str] | None): Optional query parameters.
            total_timeout (float): Total timeout for the request in seconds.

        Returns:
            Any: The decoded response body.
        """
        return await self._request("GET", url=url, params=params, total_timeout=total_timeout)

    async def post(
        self,
        *,
        url: str,
        params: dict[str, str] | None = None,
        data: Any | None = None,
        headers: dict[str, str] | None = None,
        total_timeout: float = 10.0,
    ) -> Any:
        """Perform an asynchronous HTTP POST request with a JSON body.

        Args:
            url (str): The URL to send the POST request to.
            params (dict[str, str] | None): Optional query parameters for the request.
            data (Any | None): JSON-serialisable request body.
            headers (dict[str, str] | None): Per-request headers merged over the defaults.
            total_timeout (float): Total timeout for the request in seconds.

        Returns:
            Any: The decoded response body.
        """
        return await self._request(
            "POST",
            url=url,
            params=params,
            json=data,
            headers=headers,
            total_timeout=total_timeout,
        )

    async def decode_response(self, resp: ClientResponse) -> Any:
        """Parse the response body according to its Content-Type.

        Args:
            resp (ClientResponse): The response object from the aiohttp request.

        Returns:
            Any: The parsed response data, or None for an empty body.

        Raises:
            AsyncCommInvalidContentTypeError: If no handler is registered for the content type.
        """
        content_type: str = resp.headers.get("Content-Type", "").split(";")[0].strip()

        raw: bytes = await resp.read()
        if not raw:
            logger.debug("Received empty response")
            return None

        handler: Callable[[bytes], Any] | None = self.content_handlers.get(content_type)
        if handler:
            return handler(raw)

        msg: str = f"Unknown Content-Type '{content_type}'"
        raise AsyncCommInvalidContentTypeError(msg)

    def add_handler(self, content_type: str, handler: Callable[[bytes], Any]) -> None:
        """Add a custom handler for a specific content type.

        Args:
            content_type (str): The content type to handle (e.g., "application/json").
            handler (Callable[[bytes], Any]): A function that takes bytes and returns the parsed data.
        """
        if self.content_handlers.get(content_type):
            logger.warning("Handler for content type '%s' already exists, replacing it", content_type)
        self.content_handlers[content_type] = handler

    async def _request(
        self,
        method: HTTPMethod,
        *,
        url: str,
        total_timeout: float,
        **kwargs: Any,
    ) -> Any:
        """Perform an asynchronous HTTP request and map failures to AsyncCommError subclasses.

        Args:
            method (HTTPMethod): The HTTP method to use.
            url (str): The URL to send the request to.
            total_timeout (float): Total timeout in seconds. 0 or negative disables the timeout.
            **kwargs: Additional keyword arguments passed to ``ClientSession.request``.

        Returns:
            Any: The decoded response body.

        Raises:
            AsyncCommTimeoutError: If the request timed out.
            AsyncCommConnectionError: If the server could not be reached or dropped the connection.
            AsyncCommStatusError: If the server answered with an error status.
        """
        logger.debug("[%s] url=%s timeout=%s", method, url, total_timeout)
        if total_timeout <= 0:
            _timeout = aiohttp.ClientTimeout(total=None)
        elif total_timeout < CONNECT_TIMEOUT:
            _timeout = aiohttp.ClientTimeout(total=total_timeout)
        else:
            _timeout = aiohttp.ClientTimeout(connect=CONNECT_TIMEOUT, total=total_timeout)

        try:
            async with self.session.request(method=method, url=url, timeout=_timeout, **kwargs) as resp:
                return await self.decode_response(resp)

        except TimeoutError as err:
            logger.debug(err)
            msg = "Timeout due to a lack of response from the server."
            raise AsyncCommTimeoutError(msg) from err
        except aiohttp.ClientResponseError as err:
            logger.debug(err)
            msg = "Error response from the server."
            raise AsyncCommStatusError(msg, response=err) from err
        except (ConnectionResetError, aiohttp.ClientConnectionError) as err:
            logger.debug(err)
            msg = "The server could not be reached or closed the connection."
            raise AsyncCommConnectionError(msg) from err


class AsyncCommError(Exception):
    """Base class for asynchronous communication errors."""

    def __init__(self, msg: str | BaseException, **kwargs: Any) -> None:
        _ = kwargs
        self.msg: str = str(msg)
        super().__init__(self.msg)


class AsyncCommTimeoutError(AsyncCommError):
    """Error raised when a request did not complete within the specified timeout period."""


class AsyncCommConnectionError(AsyncCommError):
    """Error raised when the connection could not be established or was reset."""


class AsyncCommStatusError(AsyncCommError):
    """Error raised when the server answered with an HTTP error status.

    Attributes:
        status (int): HTTP status code (0 if unknown).
        retry_after (float | None): Value of the Retry-After header in seconds, if present and numeric.
    """

    def __init__(self, msg: str | BaseException, **kwargs: Any) -> None:
        rsp: aiohttp.ClientResponseError | None = kwargs.pop("response", None)
        self.status: int = int(kwargs.pop("status", 0))
        self.retry_after: float | None = None
        if isinstance(rsp, aiohttp.ClientResponseError):
            self.status = rsp.status
            retry_after: str | None = rsp.headers.get("Retry-After") if rsp.headers else None
            if retry_after is not None:
                try:
                    self.retry_after = float(retry_after)
                except ValueError:
                    self.retry_after = None
            msg = f"{msg}: status='{rsp.status}' message='{rsp.message}'"
        elif self.status:
            msg = f"{msg}: status='{self.status}'"
        super().__init__(msg, **kwargs)


class AsyncCommInvalidContentTypeError(AsyncCommError):
    """Error raised when the response has a content type without a registered handler."""
