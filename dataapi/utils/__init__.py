"""Utility functions and classes for dataapi."""
