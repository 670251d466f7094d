"""Errors raised by the peer graph."""
from __future__ import annotations


class GraphError(ValueError):
    """A call violated a precondition; the graph was left unchanged.

    The message is prefixed with the name of the failing operation,
    e.g. ``"add: cannot add duplicate node"``.
    """
