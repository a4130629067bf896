"""marketdesk - streaming multi-widget financial analysis assistant."""

__version__ = "0.1.0"
