"""Tests for Floorprint."""
