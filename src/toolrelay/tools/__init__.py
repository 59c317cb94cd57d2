"""Tool contract, registry and discovery.

Concrete business tools live outside this package; they only have to
satisfy the :class:`~toolrelay.tools.base.Tool` protocol.
"""
