"""
Transport adapters for JSON-RPC envelopes.

The RPC client only ever sees one contract: send an envelope dict, get an
envelope dict back. Adapters here normalize the shapes a connection can
take into that contract:

- HTTPTransport: POSTs envelopes to a JSON-RPC endpoint via httpx
- CallableTransport: request/response functions, sync or async
- CallbackTransport: node-style ``fn(envelope, callback(error, response))``
"""
from __future__ import annotations

import asyncio
import inspect
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional

import httpx

from .config import HTTPTransportConfig
from .exceptions import RPCTransportError

logger = logging.getLogger(__name__)

Envelope = Dict[str, Any]


class Transport(ABC):
    """Abstract interface for anything that can carry a JSON-RPC envelope."""

    @abstractmethod
    async def send(self, envelope: Envelope) -> Envelope:
        """Deliver a request envelope and return the response envelope."""

    async def close(self) -> None:
        """Release any underlying connection."""


class HTTPTransport(Transport):
    """JSON-RPC over HTTP(S)."""

    def __init__(
        self,
        rpc_url: str,
        config: Optional[HTTPTransportConfig] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        if not rpc_url:
            raise ValueError("RPC URL cannot be empty")
        self._rpc_url = rpc_url
        self._config = config or HTTPTransportConfig()
        self._http_client = http_client
        self._owns_client = http_client is None

    @property
    def rpc_url(self) -> str:
        return self._rpc_url

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(
                    self._config.timeout_seconds,
                    connect=self._config.connect_timeout_seconds,
                ),
                limits=httpx.Limits(
                    max_connections=self._config.max_connections,
                    max_keepalive_connections=self._config.max_keepalive_connections,
                ),
            )
            logger.debug(f"Opened HTTP client for {self._rpc_url}")
        return self._http_client

    async def send(self, envelope: Envelope) -> Envelope:
        method = envelope.get("method")
        client = self._get_client()
        try:
            response = await client.post(
                self._rpc_url,
                json=envelope,
                headers={"Content-Type": "application/json"},
            )
            response.raise_for_status()
            return response.json()
        except httpx.HTTPError as e:
            raise RPCTransportError(
                f"HTTP transport failed for {method}: {e}", method=method
            ) from e
        except ValueError as e:
            raise RPCTransportError(
                f"Malformed JSON response for {method}: {e}", method=method
            ) from e

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client is not None and self._owns_client:
            await self._http_client.aclose()
        self._http_client = None


class CallableTransport(Transport):
    """Wraps ``fn(envelope) -> response``; ``fn`` may be sync or async."""

    def __init__(self, fn: Callable[[Envelope], Any]):
        self._fn = fn

    async def send(self, envelope: Envelope) -> Envelope:
        response = self._fn(envelope)
        if inspect.isawaitable(response):
            response = await response
        return response


class CallbackTransport(Transport):
    """Wraps ``fn(envelope, callback)`` where ``callback(error, response)``.

    The callback may be invoked from another thread.
    """

    def __init__(self, fn: Callable[[Envelope, Callable[[Any, Any], None]], Any]):
        self._fn = fn

    async def send(self, envelope: Envelope) -> Envelope:
        loop = asyncio.get_running_loop()
        future: asyncio.Future = loop.create_future()

        def _settle(error: Any, response: Any) -> None:
            if future.done():
                return
            if error is not None:
                exc = error if isinstance(error, BaseException) else RPCTransportError(
                    str(error), method=envelope.get("method")
                )
                future.set_exception(exc)
            else:
                future.set_result(response)

        def callback(error: Any, response: Any = None) -> None:
            loop.call_soon_threadsafe(_settle, error, response)

        self._fn(envelope, callback)
        return await future


def _positional_arity(fn: Callable[..., Any]) -> int:
    try:
        params = inspect.signature(fn).parameters.values()
    except (TypeError, ValueError):
        return 1
    return sum(
        1 for p in params
        if p.kind in (p.POSITIONAL_ONLY, p.POSITIONAL_OR_KEYWORD)
    )


def as_transport(provider: Any) -> Transport:
    """Normalize a provider into a :class:`Transport`.

    Accepts a Transport, an object exposing ``send_payload``/``send_async``/
    ``send``, or a bare callable. Callables taking two positional arguments
    are treated as callback-style.
    """
    if isinstance(provider, Transport):
        return provider
    if isinstance(provider, str):
        return HTTPTransport(provider)

    fn = None
    for attr in ("send_payload", "send_async", "send"):
        fn = getattr(provider, attr, None)
        if callable(fn):
            break
    else:
        fn = provider if callable(provider) else None

    if fn is None:
        raise TypeError(f"Cannot build a transport from {type(provider).__name__}")

    if _positional_arity(fn) > 1:
        return CallbackTransport(fn)
    return CallableTransport(fn)
