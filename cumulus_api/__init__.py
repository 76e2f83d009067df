"""cumulus_api: dual-store persistence for Cumulus ingest records."""

__version__ = "0.1.0"
