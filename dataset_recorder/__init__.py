"""Session recorder that turns editing sessions into validated tool-trace records."""

__version__ = "0.1.0"
