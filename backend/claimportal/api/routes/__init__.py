"""
API routes package
"""
from claimportal.api.routes import claims, policies

__all__ = [
    "claims",
    "policies",
]
