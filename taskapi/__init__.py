"""Users & Tasks API with dual-reference synchronisation."""

__version__ = "1.0.0"
