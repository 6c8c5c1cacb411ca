"""
Shared utilities: logging, errors, configuration and input validation.
"""
