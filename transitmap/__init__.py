"""Live transit position animation and map overlay lifecycle engine."""

__version__ = "0.1.0"
