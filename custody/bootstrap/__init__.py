"""Bootstrap wiring: database engine and the service container."""

from custody.bootstrap.container import (
    CustodyContainer,
    build_container,
    get_container,
    reset_container,
    set_container,
)

__all__ = [
    "CustodyContainer",
    "build_container",
    "get_container",
    "reset_container",
    "set_container",
]
