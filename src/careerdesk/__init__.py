"""CareerDesk - JSON document storage for a recruitment job board."""

__version__ = "0.1.0"
