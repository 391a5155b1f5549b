"""Identity core - user registration, lookup and bulk wipe."""

from quizengine.kernel.identity.identity_service import IdentityService

__all__ = ["IdentityService"]
