"""Shared domain package for the parking booking payment backend.

Contains the models, services and logging utilities used by the
REST API (parking_api) and the operator scripts.
"""

__version__ = "0.1.0"
