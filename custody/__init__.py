"""
Custody Core - compliance backbone for job-site risk management.

An append-only audit ledger, an atomic command model that ties domain
mutations to ledger writes, an export-claiming coordinator for queued
proof-pack exports, and a hash-chain verification layer for auditors.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
