"""Sync engine, goal-service transport plumbing and shared record types."""
