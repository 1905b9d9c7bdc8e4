"""
Test suite for pybn

Contains:
- tests/unit/          : Unit tests for individual modules
"""
