"""Catalog ingestion services."""
