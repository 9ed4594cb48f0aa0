"""
Core infrastructure: configuration, logging, exceptions and retry policies.
"""
