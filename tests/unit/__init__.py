"""Unit tests for individual activity timer components."""
