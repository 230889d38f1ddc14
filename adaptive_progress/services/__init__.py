"""Services module - progress estimation layer."""
