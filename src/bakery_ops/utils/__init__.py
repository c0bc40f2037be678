"""Utility modules: configuration, constants, validation and date helpers."""
