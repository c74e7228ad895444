"""Domain layer: reconciliation engine and provider ports."""
