"""Deferred attribute values and reference resolution."""

from stackwire.resolve.deferred import Deferred, DeferredRegistry, DeferredState
from stackwire.resolve.resolver import AttributeResolver, secret_field_selector

__all__ = [
    "AttributeResolver",
    "Deferred",
    "DeferredRegistry",
    "DeferredState",
    "secret_field_selector",
]
