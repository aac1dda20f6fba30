"""Schema validation and intent extraction."""
