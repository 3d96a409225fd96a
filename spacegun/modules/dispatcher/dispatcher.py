import logging
from typing import Any, Awaitable, Callable, Optional

import httpx

from spacegun.config.provider import ServerConfig
from spacegun.errors import DispatchError, OperationNotFoundError
from spacegun.modules.api import Layer

from .registry import Operation, OperationRegistry

logger = logging.getLogger("spacegun.dispatcher")

DISPATCH_PREFIX = "/dispatch"


class Dispatcher:
    def __init__(
        self,
        registry: OperationRegistry,
        layer: Layer,
        server: Optional[ServerConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize dispatcher.

        Args:
            registry: Operation registry shared with the HTTP router
            layer: Runtime topology, fixed for the process lifetime
            server: Server address, required in the client layer
            transport: Optional httpx transport (tests route this into an ASGI app)
        """
        if layer == Layer.CLIENT and server is None:
            raise ValueError("Client layer requires a server configuration")
        self.registry = registry
        self.layer = layer
        self.server = server
        self._transport = transport

    @property
    def is_remote(self) -> bool:
        return self.layer == Layer.CLIENT

    def call(self, name: str) -> Callable[..., Awaitable[Any]]:
        """
        Resolve an operation into an awaitable callable.

        Args:
            name: Operation identity (<module>.<operation>)

        Returns:
            Coroutine function taking the operation params (model, mapping
            or keyword arguments) and returning the typed result

        Usage:
            pods = await dispatcher.call("cluster.pods")(ServerGroup(cluster="prod"))
        """
        operation = self.registry.get(name)

        async def invoke(params: Any = None, **kwargs: Any) -> Any:
            model = operation.parse_params(params, **kwargs)
            if self.is_remote:
                return await self._call_remote(operation, model)
            return await self._call_local(operation, model)

        return invoke

    async def execute(self, name: str, payload: Any) -> Any:
        """
        Run an operation locally from raw JSON params and return JSON data.

        Used by the server surface for both dispatch and REST routes.
        """
        operation = self.registry.get(name)
        result = await self._call_local(operation, operation.parse_params(payload or {}))
        return operation.dump_result(result)

    async def _call_local(self, operation: Operation, params: Any) -> Any:
        if operation.handler is None:
            raise OperationNotFoundError(operation.name)
        logger.debug(f"Calling {operation.name} locally")
        return await operation.handler(params)

    async def _call_remote(self, operation: Operation, params: Any) -> Any:
        """
        Send the call to the server.

        Logic:
        1. POST the JSON params to /dispatch/<operation>
        2. Fail with DispatchError on timeouts, transport errors and non-2xx
        3. Parse the body into the declared result type
        No retry: the caller sees the first failure.
        """
        url = f"{self.server.url}{DISPATCH_PREFIX}/{operation.name}"
        headers = {"X-API-Key": self.server.api_key} if self.server.api_key else {}
        logger.debug(f"Dispatching {operation.name} to {url}")

        try:
            async with httpx.AsyncClient(timeout=self.server.timeout, transport=self._transport) as client:
                response = await client.post(url, json=params.model_dump(mode="json"), headers=headers)
        except httpx.TimeoutException:
            raise DispatchError(operation.name, f"timed out after {self.server.timeout}s")
        except httpx.HTTPError as e:
            raise DispatchError(operation.name, f"{type(e).__name__}: {e}")

        if not response.is_success:
            body = _response_body(response)
            raise DispatchError(
                operation.name,
                f"server answered {response.status_code}",
                status=response.status_code,
                body=body,
            )

        try:
            return operation.parse_result(response.json())
        except ValueError as e:
            raise DispatchError(
                operation.name,
                f"invalid response body: {e}",
                status=response.status_code,
                body=response.text,
            )


def _response_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text
