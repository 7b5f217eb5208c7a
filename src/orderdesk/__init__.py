"""orderdesk: inventory and order management over flat data files."""

__version__ = "0.1.0"
