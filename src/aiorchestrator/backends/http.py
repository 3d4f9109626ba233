# src/aiorchestrator/backends/http.py
"""
Generic JSON-over-HTTP backend adapter.

Posts the uniform invocation payload to ``<endpoint><path>`` and expects a
JSON object back:

    request:  {"model", "task_id", "kind", "input", "context",
               "parameters": {"max_tokens", "temperature"}}
    response: {"output": ..., "usage": {"units": <int>}}   on success
              {"error": "<message>"}                       on backend failure

Services with other wire formats get their own BaseModelBackend subclass.
"""

import asyncio
import json
import logging
from typing import Any, Dict, Optional

import aiohttp

from ..exceptions import BackendError, ConfigError
from ..models import ModelDescriptor
from .base import BackendRequest, BackendResponse, BaseModelBackend

logger = logging.getLogger(__name__)

DEFAULT_INVOKE_PATH = "/v1/invoke"
MAX_ERROR_DETAIL = 500


class HTTPBackend(BaseModelBackend):
    """
    Adapter for model services reachable over HTTP.

    The descriptor's credential, when set, is sent as a bearer token.
    A single aiohttp session is created lazily and reused across calls.
    """

    _session: Optional[aiohttp.ClientSession] = None

    def __init__(
        self,
        descriptor: ModelDescriptor,
        path: str = DEFAULT_INVOKE_PATH,
        timeout: float = 60.0,
    ):
        super().__init__(descriptor)
        if not descriptor.endpoint:
            raise ConfigError(f"HTTPBackend for '{descriptor.name}' requires an endpoint.")
        self._base_url = descriptor.endpoint.rstrip('/')
        self._path = path if path.startswith('/') else '/' + path
        self._timeout = float(timeout)
        self._session = None
        logger.info(f"HTTPBackend '{descriptor.name}' configured for {self._base_url}{self._path}")

    @property
    def url(self) -> str:
        return f"{self._base_url}{self._path}"

    async def _get_session(self) -> aiohttp.ClientSession:
        """Gets or creates the aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self._timeout))
            logger.debug(f"Created new aiohttp.ClientSession for backend '{self.get_name()}'.")
        return self._session

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        credential = self.descriptor.credential.get_secret_value()
        if credential:
            headers["Authorization"] = f"Bearer {credential}"
        return headers

    @staticmethod
    def _payload(request: BackendRequest) -> Dict[str, Any]:
        return {
            "model": request.model,
            "task_id": request.task_id,
            "kind": request.kind.value,
            "input": request.input,
            "context": request.context,
            "parameters": {
                "max_tokens": request.max_tokens,
                "temperature": request.temperature,
            },
        }

    async def invoke(self, request: BackendRequest) -> BackendResponse:
        session = await self._get_session()
        name = self.get_name()
        try:
            async with session.post(self.url, json=self._payload(request), headers=self._headers()) as response:
                body = await response.text()
                if response.status >= 400:
                    raise BackendError(name, f"Server Error ({response.status}): {body[:MAX_ERROR_DETAIL]}")
                try:
                    data = json.loads(body) if body else {}
                except json.JSONDecodeError as e:
                    raise BackendError(name, f"Invalid JSON response: {e}") from e
        except asyncio.TimeoutError as e:
            logger.error(f"Request to backend '{name}' at {self.url} timed out after {self._timeout} seconds.")
            raise BackendError(name, f"Request timed out after {self._timeout}s.") from e
        except aiohttp.ClientConnectionError as e:
            logger.error(f"Could not connect to backend '{name}' at {self.url}: {e}")
            raise BackendError(name, f"Could not connect to server: {e}") from e
        except aiohttp.ClientError as e:
            raise BackendError(name, f"HTTP client error: {e}") from e

        if not isinstance(data, dict):
            return BackendResponse(output=data)
        if data.get("error"):
            raise BackendError(name, str(data["error"]))

        units = None
        usage = data.get("usage")
        if isinstance(usage, dict) and usage.get("units") is not None:
            try:
                units = int(usage["units"])
            except (TypeError, ValueError):
                logger.warning(f"Backend '{name}' reported non-numeric usage: {usage['units']!r}")
        output = data["output"] if "output" in data else data
        return BackendResponse(output=output, units_used=units)

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
            logger.debug(f"Closed aiohttp session for backend '{self.get_name()}'.")
        self._session = None
