# src/hearth/services/__init__.py
"""Business logic services for the Hearth node."""
