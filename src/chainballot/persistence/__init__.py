"""Audit event log and state snapshot store."""
