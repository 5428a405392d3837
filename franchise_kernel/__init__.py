"""
Franchise Kernel - role-scoped revenue aggregation and profit sharing.

A multi-tenant core with:
- Scope-resolved tenant filtering (the scope decides the tenant, never the client)
- Monthly revenue aggregation over append-only ledger streams
- Three-tier percentage override cascade (franchise -> global -> default)
- Idempotent profit-share upserts with a payment-status lifecycle
- Commit-time change capture feeding a hint-only notifier
"""

__version__ = "0.1.0"
