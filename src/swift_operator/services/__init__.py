"""Services for talking to external systems."""
