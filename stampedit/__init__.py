"""Non-destructive image editing engine for catalog photographs."""

__version__ = "0.1.0"
