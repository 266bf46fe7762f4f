"""
certstore

TLS certificate storage on S3-compatible object stores, with optional
encryption at rest and lease-object locking across processes.
"""

__version__ = "0.1.0"
