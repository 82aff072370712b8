"""Account directory adapters.

Provides both a local implementation (accounts table in the roster DuckDB
file) and a client for a remote directory exposing RPC endpoints.
Both offer the same async operations:

    find_account_by_email(email) -> Account | None
    link_account_to_roster(team_id, roster_id, email) -> None
    link_guardian_to_roster(roster_id, guardian_email) -> None
"""

import asyncio
import logging
from typing import Any, Optional

import httpx

from roster_enroll.errors import (
    AccountNotFoundError,
    DirectoryUnavailableError,
    LinkError,
    RosterNotFoundError,
)
from roster_enroll.models.roster import Account
from roster_enroll.repositories.roster_repository import RosterRepository
from roster_enroll.utils.normalize import normalize_email

logger = logging.getLogger(__name__)


class RepositoryDirectory:
    """Directory backed by the local accounts table.

    DuckDB calls are blocking, so each one runs in a worker thread.
    """

    def __init__(self, repository: RosterRepository):
        self.repository = repository

    async def find_account_by_email(self, email: str) -> Optional[Account]:
        return await asyncio.to_thread(self.repository.find_account_by_email, email)

    async def link_account_to_roster(self, team_id: str, roster_id: str, email: str) -> None:
        await asyncio.to_thread(self.repository.link_account_to_roster, team_id, roster_id, email)

    async def link_guardian_to_roster(self, roster_id: str, guardian_email: str) -> None:
        await asyncio.to_thread(self.repository.link_guardian_to_roster, roster_id, guardian_email)

    async def close(self):
        pass


class DirectoryClient:
    """Remote account directory reached over HTTP RPC.

    Calls ``POST {base_url}/rpc/<function>`` with a JSON body.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the directory client.

        Args:
            base_url: Directory REST root, e.g. https://example.supabase.co/rest/v1
            api_key: Key sent as ``apikey`` and bearer token
            timeout: Request timeout in seconds
            transport: Optional transport override (tests)
        """
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            headers = {}
            if self.api_key:
                headers = {"apikey": self.api_key, "Authorization": f"Bearer {self.api_key}"}
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=headers,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self):
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def _rpc(self, function: str, params: dict[str, Any]) -> Any:
        """Call an RPC function and return the decoded JSON body.

        Raises:
            DirectoryUnavailableError: Transport failure, or a 401/403/5xx response
            LinkError: Any other error response, carrying the directory's message
        """
        try:
            client = await self._get_client()
            response = await client.post(f"/rpc/{function}", json=params)
        except httpx.HTTPError as e:
            raise DirectoryUnavailableError(f"Directory request {function} failed: {e}") from e

        if response.is_error:
            message = _error_message(response)
            if response.status_code in (401, 403) or response.status_code >= 500:
                raise DirectoryUnavailableError(
                    f"Directory {function} returned {response.status_code}: {message}"
                )
            raise LinkError(message)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise DirectoryUnavailableError(f"Directory {function} returned invalid JSON") from e

    async def find_account_by_email(self, email: str) -> Optional[Account]:
        """Look up an account by email.

        The lookup function may return a list of rows or a single object
        depending on how it is declared; both are accepted.
        """
        result = await self._rpc("lookup_user_by_email", {"p_email": normalize_email(email)})
        if isinstance(result, list):
            return Account.from_row(result[0]) if result else None
        if isinstance(result, dict) and result:
            return Account.from_row(result)
        return None

    async def link_account_to_roster(self, team_id: str, roster_id: str, email: str) -> None:
        try:
            await self._rpc(
                "link_player_to_user",
                {"p_team_id": team_id, "p_player_id": roster_id, "p_player_email": email},
            )
        except DirectoryUnavailableError:
            raise
        except LinkError as e:
            msg = str(e)
            if "No user found" in msg:
                raise AccountNotFoundError(
                    f"No account found for {email}. The athlete must sign up first."
                ) from e
            if "No player found" in msg:
                raise RosterNotFoundError("Player not found on this team.") from e
            raise LinkError(f"Error linking player: {msg}") from e

    async def link_guardian_to_roster(self, roster_id: str, guardian_email: str) -> None:
        await self._rpc(
            "link_guardian_to_player",
            {"p_player_id": roster_id, "p_guardian_email": guardian_email},
        )


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(data, dict):
        return str(data.get("message") or data.get("error") or data)
    return str(data)


def get_account_directory(
    repository: RosterRepository,
    directory_url: str = "",
    api_key: str = "",
    timeout: float = 10.0,
    use_local: bool = False,
) -> RepositoryDirectory | DirectoryClient:
    """Factory function to get the configured account directory.

    Args:
        repository: Roster repository, used when no remote directory is configured
        directory_url: Remote directory REST root
        api_key: Remote directory key
        timeout: Remote request timeout in seconds
        use_local: Force the local directory

    Returns:
        DirectoryClient or RepositoryDirectory
    """
    if use_local or not directory_url:
        logger.info("Using local RepositoryDirectory")
        return RepositoryDirectory(repository)
    logger.info(f"Using remote DirectoryClient at {directory_url}")
    return DirectoryClient(directory_url, api_key=api_key, timeout=timeout)
