"""
Pytest test suite for the storefront order service backend.

Test categories:
- Unit tests: status mapping, normalizer, signatures, pure service helpers
- Integration tests: services against in-memory SQLite
- API tests: full FastAPI app through httpx ASGITransport
"""
