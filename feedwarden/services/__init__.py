"""
FeedWarden Services
===================

Operator-facing service layer shared by the CLI and any future API.
"""

from .admin_service import AdminService, OperationResult

__all__ = [
    'AdminService',
    'OperationResult',
]
