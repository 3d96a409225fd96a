"""
Dispatcher Module - Black Box Interface

Purpose: Route named operations to a local handler or to the server
Interface: OperationRegistry.declare()/bind(), Dispatcher.call(), create_dispatch_router()
Hidden: HTTP transport, serialization, route derivation

Business logic calls operations the same way in every layer; only the
dispatcher knows whether the call stays in-process.
"""

from .dispatcher import DISPATCH_PREFIX, Dispatcher
from .registry import Operation, OperationRegistry, derive_route
from .router import create_api_key_dependency, create_dispatch_router, install_error_handlers

__all__ = [
    "DISPATCH_PREFIX",
    "Dispatcher",
    "Operation",
    "OperationRegistry",
    "create_api_key_dependency",
    "create_dispatch_router",
    "derive_route",
    "install_error_handlers",
]
