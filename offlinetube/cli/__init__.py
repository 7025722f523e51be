"""Command-line interface for OfflineTube."""
