# safe_harbor/engine/__init__.py

"""Engine package providing recognizers, detection, span resolution and redaction.

This package contains the components that run the pattern rules over text
and rewrite the text from the resolved spans.
"""
