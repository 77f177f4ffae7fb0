"""
Adapters: Concrete implementations of ports.

- Storage adapters (SQLite, in-memory)
"""
