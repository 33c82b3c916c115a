"""Signal notification bridge - move signal delivery into ordinary code."""

from .channel import NotificationChannel
from .core import SignalBridge
from .dispatcher import Dispatcher
from .registrar import HandlerRecord, RegistrarState, SignalRegistrar
from .waiter import TIMED_OUT, EventWaiter, WaitResult
from .exceptions import (
    BridgeError,
    ConfigurationError,
    ResourceExhaustion,
    UnexpectedClosure,
)

__all__ = [
    "NotificationChannel",
    "SignalBridge",
    "Dispatcher",
    "HandlerRecord",
    "RegistrarState",
    "SignalRegistrar",
    "TIMED_OUT",
    "EventWaiter",
    "WaitResult",
    "BridgeError",
    "ConfigurationError",
    "ResourceExhaustion",
    "UnexpectedClosure",
]
