"""Domain layer for Custody Core.

Pure value objects, enums and hashing functions. Nothing in this package
performs I/O.
"""
