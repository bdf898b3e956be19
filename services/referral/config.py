"""
Referral network configuration.

Rank rule: a sponsor at rank r moves to r + 1 once at least
PROMOTION_THRESHOLD of its direct referrals hold rank r or higher.
"""

from schemas.models.user import MAX_SPONSOR_LEVEL, ROOT_SPONSOR

PROMOTION_THRESHOLD = 3
MAX_LEVEL = MAX_SPONSOR_LEVEL

# Re-reads allowed when a concurrent admission changes a rank under us
MAX_LEVEL_UPDATE_ATTEMPTS = 5

__all__ = [
    "MAX_LEVEL",
    "MAX_LEVEL_UPDATE_ATTEMPTS",
    "PROMOTION_THRESHOLD",
    "ROOT_SPONSOR",
]
