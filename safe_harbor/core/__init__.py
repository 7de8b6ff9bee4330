# safe_harbor/core/__init__.py

"""Core domain models and utilities used across the redaction engine.

This package provides identifier categories, domain types, exceptions, and
the pattern registry shared by the rest of the application.
"""
