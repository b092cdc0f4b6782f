"""Core components of stockprism."""
