"""
API tests for Taskboard.

Tests use the Flask test client and cover:
- Auth flows, profile and preferences
- Task CRUD, listing, statistics, archive and bulk update
- Error envelopes and rate limiting
"""
