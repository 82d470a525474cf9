"""
Test suite for Taskboard.

This package contains:
- unit/: model, token, query, validation, rate-limit and client-state logic
- integration/: the REST API through the Flask test client, including the
  Python client running against the real app
- security/: tenant isolation, mass assignment and token tampering
"""
