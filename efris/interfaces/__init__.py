from efris.interfaces.envelope import (
    DataDescription,
    Envelope,
    ExtendField,
    GlobalInfo,
    Payload,
    ReturnStateInfo,
)
from efris.interfaces.registry import INTERFACES, resolve

__all__ = [
    "DataDescription",
    "Envelope",
    "ExtendField",
    "GlobalInfo",
    "Payload",
    "ReturnStateInfo",
    "INTERFACES",
    "resolve",
]
