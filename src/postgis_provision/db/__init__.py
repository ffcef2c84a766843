"""PostgreSQL connection handles and statement building."""
