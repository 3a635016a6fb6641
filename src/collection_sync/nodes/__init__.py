"""Processing nodes of the sync pipeline."""
