"""Resolve an entered email to an existing directory account."""

import logging

from roster_enroll.models.enrollment import ResolvedIdentity
from roster_enroll.utils.normalize import normalize_email

logger = logging.getLogger(__name__)


class IdentityResolver:
    """Looks up accounts by email for pre-fill and linking.

    Never raises: a directory failure degrades to NO_MATCH so the coach
    can continue with manual entry.
    """

    def __init__(self, directory):
        """
        Args:
            directory: Account directory exposing async find_account_by_email()
        """
        self.directory = directory

    async def resolve(self, email: str) -> ResolvedIdentity:
        email = normalize_email(email)
        if not email:
            return ResolvedIdentity.no_match(email)

        try:
            account = await self.directory.find_account_by_email(email)
        except Exception as e:
            # Indistinguishable from no-match for the caller; only the log differs
            logger.warning(f"Account lookup failed for {email}, continuing without a match: {e}")
            return ResolvedIdentity.no_match(email)

        if account is None or not account.id:
            logger.info(f"No account found for {email}")
            return ResolvedIdentity.no_match(email)

        logger.info(f"Resolved {email} to account {account.id}")
        return ResolvedIdentity.matched(account, email)
