"""
API package - HTTP surface over the ledger and its mirror.
"""
