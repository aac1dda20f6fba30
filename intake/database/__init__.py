"""Store access: pool lifecycle, routine calls, staging and reconciliation."""
