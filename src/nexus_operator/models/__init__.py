"""
Models package - Pydantic models for type-safe resource handling.

Defines data models for:
- Nexus instance specifications
- Admin and CI user credential records
- Per-script parameter payloads
"""
