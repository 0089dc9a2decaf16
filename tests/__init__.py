"""
Test package for the activity timer.

Test Organization:
    unit/: Tests for individual components with a temporary database
    integration/: Tests that drive the CLI and web API end to end
    conftest.py: Pytest configuration and shared fixtures
"""
