import logging

from app.services.messaging_oracles import MessagingOracles, UserRole

logger = logging.getLogger(__name__)


class RoleResolver:
    def __init__(self, oracles: MessagingOracles):
        self.oracles = oracles

    def role_of(self, user_id) -> UserRole | None:
        try:
            return self.oracles.users.role_of(str(user_id))
        except Exception as e:
            logger.warning("Role lookup failed for user %s: %s", user_id, e)
            return None


class RelationshipResolver:
    """Has the candidate applied to a job owned by the employer?

    Errors count as "no" so an unreachable Applications service never
    grants messaging.
    """

    def __init__(self, oracles: MessagingOracles):
        self.oracles = oracles

    def has_applied(self, candidate_id, employer_id) -> bool:
        try:
            return (
                self.oracles.applications.has_applied(
                    str(candidate_id), str(employer_id)
                )
                is True
            )
        except Exception as e:
            logger.warning(
                "Relationship lookup failed for candidate %s / employer %s: %s",
                candidate_id,
                employer_id,
                e,
            )
            return False


class EntitlementResolver:
    """Does the user's current subscription allow auto-messaging?"""

    def __init__(self, oracles: MessagingOracles):
        self.oracles = oracles

    def allows_auto_messaging(self, user_id) -> bool:
        try:
            return self.oracles.subscriptions.allows_auto_messaging(str(user_id)) is True
        except Exception as e:
            logger.warning("Entitlement lookup failed for user %s: %s", user_id, e)
            return False
