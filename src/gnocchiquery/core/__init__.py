"""Transport-independent query planning, reconciliation and authentication."""
