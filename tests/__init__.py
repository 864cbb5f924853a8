"""
Tests package - Test suite for the Nexus operator.

Contains:
- unit/: Unit tests for individual components
"""
