"""Security tests for the document vault

This module contains security-focused tests including:
- Patient isolation (cross-patient reads, listings, uploads)
- Authentication bypass attempts
- Signed URL tampering
"""
