"""Data access for tickets, conversation, actors and workload."""
