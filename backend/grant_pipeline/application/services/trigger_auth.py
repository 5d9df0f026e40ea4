"""Trigger authorization for scheduled and administrative pipeline runs."""

import hmac

from grant_pipeline.domain.entities.pipeline_job import TriggerSource
from grant_pipeline.domain.exceptions import UnauthorizedTriggerError

ADMIN_TRIGGER = "admin"


class TriggerAuthorizer:
    """Checks shared secrets before any job record is created.

    ``Authorization: Bearer <cron_secret>`` identifies the scheduler;
    ``x-api-key: <admin_api_key>`` identifies an administrator. An unset
    secret never matches.
    """

    def __init__(self, cron_secret: str = "", admin_api_key: str = "") -> None:
        self._cron_secret = cron_secret
        self._admin_api_key = admin_api_key

    def verify(self, authorization: str | None = None, api_key: str | None = None) -> str:
        """Return the trigger source for valid credentials.

        Raises:
            UnauthorizedTriggerError: neither credential matches.
        """
        if self._cron_secret and authorization:
            scheme, _, token = authorization.partition(" ")
            if scheme.lower() == "bearer" and _matches(token.strip(), self._cron_secret):
                return TriggerSource.CRON.value

        if self._admin_api_key and api_key and _matches(api_key, self._admin_api_key):
            return ADMIN_TRIGGER

        raise UnauthorizedTriggerError()

    def verify_admin(self, api_key: str | None) -> None:
        """Guard for admin routes; open when no admin key is configured."""
        if not self._admin_api_key:
            return
        if not api_key or not _matches(api_key, self._admin_api_key):
            raise UnauthorizedTriggerError()


def _matches(given: str, expected: str) -> bool:
    return hmac.compare_digest(given.encode(), expected.encode())
