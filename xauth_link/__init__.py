"""Discord linked-roles bridge for XAuthConnect accounts."""

__version__ = "0.1.0"
