"""Schemas shared between the tracker server and the notification watcher."""
