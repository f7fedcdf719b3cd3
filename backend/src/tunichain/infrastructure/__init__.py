"""
Infrastructure package - persistence for the off-chain mirror.
"""
