"""
Domain package - Core records, events and rules with no external dependencies.

This package contains pure Python domain models, error types, hashing and
pre-submission validation shared by the ledger, the gateway and the mirror.
"""
