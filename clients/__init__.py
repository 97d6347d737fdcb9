"""Remote service clients (technical assignment, bonity, income ceiling)."""

from .assignment_client import AssignmentClient
from .base import ServiceClient
from .bonity_client import BonityClient
from .income_ceiling import CachedIncomeCeiling, IncomeCeilingClient, parse_income_ceiling

__all__ = [
    "AssignmentClient",
    "BonityClient",
    "CachedIncomeCeiling",
    "IncomeCeilingClient",
    "ServiceClient",
    "parse_income_ceiling",
]
