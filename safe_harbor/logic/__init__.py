# safe_harbor/logic/__init__.py

"""Validation strategies applied to raw pattern matches."""
