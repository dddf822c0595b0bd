# Path: gib_validator/tests/__init__.py
"""GIB Validator test suite."""
