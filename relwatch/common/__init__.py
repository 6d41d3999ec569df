"""Shared helpers used across relwatch packages."""
