"""HTTP layer for the registration payment gate."""
