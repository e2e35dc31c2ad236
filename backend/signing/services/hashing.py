"""
Hashing helpers for stamped documents.

A SHA-256 of the stamped bytes lets callers detect later tampering with the
signed PDF they stored.
"""

import hashlib


class HashingService:
    """Service for document hashing operations."""

    @staticmethod
    def compute_bytes_sha256(data):
        """
        Compute SHA256 hash of an in-memory byte buffer.

        Args:
            data: bytes or bytes-like object

        Returns:
            str: Hexadecimal SHA256 hash
        """
        return hashlib.sha256(bytes(data)).hexdigest()

