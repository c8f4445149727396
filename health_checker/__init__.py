"""TCP health checker with Discord status alerts and Azure VM recovery."""

__version__ = "0.1.0"
