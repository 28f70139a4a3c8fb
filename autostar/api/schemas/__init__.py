"""Wire schemas shared by the HTTP layer."""
