"""Data source and destination connectors."""
