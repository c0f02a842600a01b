"""
Veriff Verification Core

This package contains the session orchestration for Veriff identity verification:
- HMAC request signing
- Session client for the Veriff session API
- Normalization of decision responses
- Bounded decision polling
- End-to-end orchestration and decision reporting
"""

__version__ = "1.0.0"
