"""
API Module - REST Interface

Provides HTTP upload/download access to the share service.
"""

from .rest import create_app, run_api_server

__all__ = ['create_app', 'run_api_server']
