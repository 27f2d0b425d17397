"""HTTP clients for the subsystems the messaging engine consults.

Users, Applications and Subscriptions are owned by other services. The
clients here only read from them; they raise on transport or payload
errors and leave fail-closed handling to the resolvers.
"""

import enum
import logging
from dataclasses import dataclass, field

import httpx

from app.config import settings

logger = logging.getLogger(__name__)


class UserRole(enum.Enum):
    employer = "employer"
    job_seeker = "job_seeker"
    admin = "admin"


class SubscriptionPlan(enum.Enum):
    free = "free"
    basic = "basic"
    pro = "pro"
    enterprise = "enterprise"


class SubscriptionStatus(enum.Enum):
    active = "active"
    inactive = "inactive"
    cancelled = "cancelled"
    past_due = "past_due"


def subscription_allows_messaging(
    subscription: dict | None, plans: tuple[str, ...] | None = None
) -> bool:
    """Active status, a qualifying plan tier and the direct-messaging flag."""
    if not subscription:
        return False
    qualifying = plans if plans is not None else settings.messaging_plans
    status = str(subscription.get("status") or "").lower()
    plan = str(subscription.get("plan") or "").lower()
    enabled = subscription.get("direct_messaging_enabled")
    if enabled is None:
        enabled = subscription.get("directMessagingEnabled")
    return (
        status == SubscriptionStatus.active.value
        and plan in qualifying
        and enabled is True
    )


class _ServiceClient:
    def __init__(self, base_url: str, timeout: float | None = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout if timeout is not None else settings.oracle_timeout_seconds

    def _get(self, path: str, params: dict | None = None) -> httpx.Response:
        with httpx.Client(base_url=self.base_url, timeout=self.timeout) as client:
            resp = client.get(path, params=params)
        return resp


class UserDirectory(_ServiceClient):
    def role_of(self, user_id: str) -> UserRole | None:
        resp = self._get(f"/users/{user_id}")
        if resp.status_code == 404:
            return None
        resp.raise_for_status()
        role = resp.json().get("role")
        try:
            return UserRole(role)
        except ValueError:
            return None


class ApplicationRelationships(_ServiceClient):
    def has_applied(self, candidate_id: str, employer_id: str) -> bool:
        resp = self._get(
            "/applications/exists",
            params={"applicant": candidate_id, "job_posted_by": employer_id},
        )
        resp.raise_for_status()
        return resp.json().get("exists") is True


class SubscriptionEntitlements(_ServiceClient):
    def current_subscription(self, user_id: str) -> dict | None:
        resp = self._get(f"/subscriptions/{user_id}/current")
        if resp.status_code == 404:
            return None
        resp.raise_for_status()
        return resp.json()

    def allows_auto_messaging(self, user_id: str) -> bool:
        return subscription_allows_messaging(self.current_subscription(user_id))


@dataclass
class MessagingOracles:
    users: UserDirectory = field(
        default_factory=lambda: UserDirectory(settings.users_service_url)
    )
    applications: ApplicationRelationships = field(
        default_factory=lambda: ApplicationRelationships(
            settings.applications_service_url
        )
    )
    subscriptions: SubscriptionEntitlements = field(
        default_factory=lambda: SubscriptionEntitlements(
            settings.subscriptions_service_url
        )
    )


default_oracles = MessagingOracles()


def get_oracles() -> MessagingOracles:
    return default_oracles
