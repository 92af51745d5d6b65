"""Commit summary generation: provider interface, transports and retry."""
