"""Chat transports that feed events into the command router."""
