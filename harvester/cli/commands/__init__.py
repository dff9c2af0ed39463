"""Click command modules."""
