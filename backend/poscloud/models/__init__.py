from .tenancy import Company
from .auth import User, SessionToken
from .override import OverrideRequest, OverrideToken, VirtualTokenSecret
from .audit import AuditLog

__all__ = [
    'Company',
    'User', 'SessionToken',
    'OverrideRequest', 'OverrideToken', 'VirtualTokenSecret',
    'AuditLog',
]
