"""
Database package for Heimdall.

Public API:
    - ConnectionManager: single long-lived aiosqlite connection with
      serialised write transactions
    - SchemaManager: table, index and trigger creation
"""
