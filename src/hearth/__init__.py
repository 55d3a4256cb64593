"""Hearth: serverless community state, threaded messages and signed invites."""

__version__ = "0.1.0"
