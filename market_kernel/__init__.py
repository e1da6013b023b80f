"""
Market Kernel

Lifecycle governance for marketplace entities with:
- Sealed transition tables for listings, exchange requests and disputes
- Exactly-once transition commits under row-level locking
- Monotonic entity versions and append-only audit records
- Idempotent replay of retried mutations
"""

__version__ = "0.1.0"
