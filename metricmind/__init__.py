"""Git commit analytics: extraction, loading, categorization and revert-aware weighting."""

__version__ = "0.1.0"
