"""
Ingestion Server Domain

Server side of the file relay:
- acceptor.py - sequential accept loop on one listening socket
- pool.py - fixed-capacity worker pool with blocking submission
- session.py - frame decoding and output file materialization
"""

__all__ = ["acceptor", "pool", "session"]
