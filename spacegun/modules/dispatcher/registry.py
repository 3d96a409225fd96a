"""
Operation registry.

Every module declares its operations here at startup: identity, parameter
model and result type. Handlers are bound only in processes that own the
gateways. The HTTP router and the remote dispatch path both read this table,
so client and server always agree on operation identity.
"""

import logging
import types
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Iterator, List, Optional, Type, Union, get_args, get_origin

from pydantic import BaseModel, TypeAdapter

from spacegun.errors import OperationNotFoundError

logger = logging.getLogger("spacegun.dispatcher")

Handler = Callable[[Any], Awaitable[Any]]

SCALAR_TYPES = (str, int, float, bool)


def _is_scalar(annotation: Any) -> bool:
    """True for scalar annotations, including Optional scalars."""
    if annotation in SCALAR_TYPES:
        return True
    if get_origin(annotation) in (Union, types.UnionType):
        args = [arg for arg in get_args(annotation) if arg is not type(None)]
        return bool(args) and all(arg in SCALAR_TYPES for arg in args)
    return False


def derive_route(name: str, params: Type[BaseModel]) -> Optional[str]:
    """
    Derive a REST route template from an operation's parameters.

    Required parameters become path segments in declaration order, optional
    ones are left to the query string. Operations with structured parameters
    get no route and are reachable only through the dispatch endpoint.

        cluster.pods with {cluster, namespace?} -> /api/cluster/pods/{cluster}
    """
    module, operation = name.split(".", 1)
    segments = []
    for field_name, info in params.model_fields.items():
        if not _is_scalar(info.annotation):
            return None
        if info.is_required():
            segments.append(f"/{{{field_name}}}")
    return f"/api/{module}/{operation}" + "".join(segments)


@dataclass
class Operation:
    """A named, parameterized operation."""

    name: str
    params: Type[BaseModel]
    result: Any
    handler: Optional[Handler] = None
    route: Optional[str] = None
    _adapter: Optional[TypeAdapter] = field(default=None, repr=False, compare=False)

    @property
    def module(self) -> str:
        return self.name.split(".", 1)[0]

    @property
    def adapter(self) -> TypeAdapter:
        """Adapter used to serialize and parse the result type."""
        if self._adapter is None:
            self._adapter = TypeAdapter(self.result)
        return self._adapter

    def parse_params(self, params: Any = None, **kwargs: Any) -> BaseModel:
        """Coerce a model, a mapping or keyword arguments into the params model."""
        if params is None:
            return self.params(**kwargs)
        if isinstance(params, self.params):
            return params
        if isinstance(params, BaseModel):
            params = params.model_dump()
        return self.params.model_validate({**params, **kwargs})

    def dump_result(self, result: Any) -> Any:
        return self.adapter.dump_python(result, mode="json")

    def parse_result(self, data: Any) -> Any:
        return self.adapter.validate_python(data)


class OperationRegistry:
    """Mapping from operation identity to its declaration and handler."""

    def __init__(self):
        self._operations: Dict[str, Operation] = {}

    def declare(self, name: str, params: Type[BaseModel], result: Any) -> Operation:
        """
        Declare an operation.

        Args:
            name: Identity in the form <module>.<operation>
            params: Pydantic model of the parameters
            result: Result type (any type pydantic can adapt)

        Returns:
            The declared operation
        """
        if "." not in name:
            raise ValueError(f"Operation name {name} must have the form <module>.<operation>")
        existing = self._operations.get(name)
        if existing is not None:
            return existing
        operation = Operation(name=name, params=params, result=result, route=derive_route(name, params))
        self._operations[name] = operation
        return operation

    def bind(self, name: str, handler: Handler) -> None:
        """Attach the local implementation of a declared operation."""
        self.get(name).handler = handler
        logger.debug(f"Bound handler for {name}")

    def get(self, name: str) -> Operation:
        operation = self._operations.get(name)
        if operation is None:
            raise OperationNotFoundError(name)
        return operation

    def bound(self) -> List[Operation]:
        """Operations with a local handler, in declaration order."""
        return [op for op in self._operations.values() if op.handler is not None]

    def __contains__(self, name: str) -> bool:
        return name in self._operations

    def __iter__(self) -> Iterator[Operation]:
        return iter(self._operations.values())

    def __len__(self) -> int:
        return len(self._operations)
