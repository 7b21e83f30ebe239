"""Actor types.

Learners and administrators are disjoint principals: separate tables,
separate token secrets, separate session gates. Everything that differs
between them hangs off ActorType so the auth code is written once.
"""

from enum import Enum


class ActorType(str, Enum):
    """Kind of authenticated principal."""

    LEARNER = "learner"
    ADMINISTRATOR = "administrator"

    @property
    def settings_prefix(self) -> str:
        """Prefix of the token settings ("learner_*" / "admin_*")."""
        return "learner" if self is ActorType.LEARNER else "admin"

    @property
    def table(self) -> str:
        """Base Cassandra table holding accounts of this type."""
        return "learners" if self is ActorType.LEARNER else "administrators"

    @property
    def label(self) -> str:
        return "Learner" if self is ActorType.LEARNER else "Administrator"
