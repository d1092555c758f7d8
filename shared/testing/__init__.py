"""Test-suite helpers shared by the root and package conftest modules."""

from .environment import apply_required_test_environment

__all__ = ["apply_required_test_environment"]
