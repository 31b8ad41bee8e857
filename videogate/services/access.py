from __future__ import annotations

"""
Access evaluation for resolved videos.

Pure decisions only: every store read the decision depends on (the
subscription status) is performed by the caller and passed in, so nothing
here can fail or touch the network.

Policy
------
- `standard` → always allowed.
- `vip`      → denied without an identity; otherwise allowed iff the
               identity's subscription is active at evaluation time.

The identity is trusted as presented. Nothing here verifies it.
"""

from datetime import datetime
from enum import Enum
from typing import Optional, Protocol

from videogate.schemas.video import SubscriptionStatus, VideoCategory

__all__ = ["AccessDecision", "decide", "allow", "needs_subscription", "clean_identity"]


class _HasCategory(Protocol):
    category: VideoCategory


class AccessDecision(str, Enum):
    GRANTED = "granted"
    IDENTITY_REQUIRED = "identity_required"
    SUBSCRIPTION_INACTIVE = "subscription_inactive"


def clean_identity(identity: Optional[str]) -> Optional[str]:
    """Blank identities count as absent; any other value is kept as presented."""
    if identity is None or not identity.strip():
        return None
    return identity


def needs_subscription(record: _HasCategory, identity: Optional[str]) -> bool:
    """True when `decide` would need a subscription lookup for this caller."""
    return record.category is VideoCategory.VIP and clean_identity(identity) is not None


def decide(
    record: _HasCategory,
    identity: Optional[str],
    subscription: Optional[SubscriptionStatus] = None,
    *,
    now: Optional[datetime] = None,
) -> AccessDecision:
    if record.category is not VideoCategory.VIP:
        return AccessDecision.GRANTED
    if clean_identity(identity) is None:
        return AccessDecision.IDENTITY_REQUIRED
    if subscription is not None and subscription.is_active(now):
        return AccessDecision.GRANTED
    return AccessDecision.SUBSCRIPTION_INACTIVE


def allow(
    record: _HasCategory,
    identity: Optional[str],
    subscription: Optional[SubscriptionStatus] = None,
    *,
    now: Optional[datetime] = None,
) -> bool:
    return decide(record, identity, subscription, now=now) is AccessDecision.GRANTED
