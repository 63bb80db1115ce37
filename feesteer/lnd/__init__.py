"""LND node access"""

from .client import LNDRestClient, LNDError, PolicyUpdateError

__all__ = [
    'LNDRestClient',
    'LNDError',
    'PolicyUpdateError'
]
