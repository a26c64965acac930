"""
File Relay

Watches a drop directory for new ``key=value`` files, forwards the entries
whose keys match a configured pattern to a remote ingestion server, and lets
that server materialize each session as a local file.
"""

__version__ = "1.0.0"
