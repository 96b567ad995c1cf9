"""rent-scout: multi-station rental listing crawler."""

__version__ = "0.1.0"
