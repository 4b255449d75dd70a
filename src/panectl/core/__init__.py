"""Core module - pane addressing"""

from .address import AddressResolver, PaneAddress, format_address, parse

__all__ = [
    "AddressResolver",
    "PaneAddress",
    "format_address",
    "parse",
]
