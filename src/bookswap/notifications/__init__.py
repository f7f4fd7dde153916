"""Notification records, storage, fanout and read-state operations."""
