"""
Directory Relay Domain

Client side of the file relay:
- filters.py - full-match key filtering of parsed property files
- sender.py - one-connection-per-file session sender
- watcher.py - sequential creation-event loop driving the pipeline
"""

__all__ = ["filters", "sender", "watcher"]
