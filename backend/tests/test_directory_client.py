"""Tests for the remote account directory client."""

import json

import httpx
import pytest

from roster_enroll.errors import (
    AccountNotFoundError,
    DirectoryUnavailableError,
    LinkError,
    RosterNotFoundError,
)
from roster_enroll.services.directory_client import (
    DirectoryClient,
    RepositoryDirectory,
    get_account_directory,
)

pytestmark = pytest.mark.anyio

BASE_URL = "https://directory.test/rest/v1"


def _client(handler):
    return DirectoryClient(BASE_URL, api_key="secret", transport=httpx.MockTransport(handler))


class TestFindAccount:
    async def test_list_response(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            seen["apikey"] = request.headers.get("apikey")
            return httpx.Response(
                200,
                json=[{"id": "u1", "email": "jo.lin@example.edu", "first_name": "Jo", "last_name": "Lin"}],
            )

        account = await _client(handler).find_account_by_email(" Jo.Lin@Example.edu")

        assert account.id == "u1"
        assert account.first_name == "Jo"
        assert seen["path"] == "/rest/v1/rpc/lookup_user_by_email"
        assert seen["body"] == {"p_email": "jo.lin@example.edu"}
        assert seen["apikey"] == "secret"

    async def test_object_response_with_legacy_name(self):
        def handler(request):
            return httpx.Response(200, json={"id": "u4", "email": "r@example.edu", "name": "River Song"})

        account = await _client(handler).find_account_by_email("r@example.edu")

        assert account.first_name == "River"
        assert account.last_name == "Song"

    @pytest.mark.parametrize("body", [b"", b"[]", b"null", b"{}"])
    async def test_empty_response_is_no_match(self, body):
        def handler(request):
            return httpx.Response(200, content=body)

        assert await _client(handler).find_account_by_email("x@example.edu") is None

    async def test_server_error_is_unavailable(self):
        def handler(request):
            return httpx.Response(500, json={"message": "boom"})

        with pytest.raises(DirectoryUnavailableError):
            await _client(handler).find_account_by_email("x@example.edu")

    async def test_forbidden_is_unavailable(self):
        def handler(request):
            return httpx.Response(403, json={"message": "permission denied"})

        with pytest.raises(DirectoryUnavailableError):
            await _client(handler).find_account_by_email("x@example.edu")

    async def test_connect_error_is_unavailable(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(DirectoryUnavailableError):
            await _client(handler).find_account_by_email("x@example.edu")


class TestLinkAccount:
    async def test_link_sends_params(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(204)

        await _client(handler).link_account_to_roster("t1", "p1", "jo.lin@example.edu")

        assert seen["path"] == "/rest/v1/rpc/link_player_to_user"
        assert seen["body"] == {
            "p_team_id": "t1",
            "p_player_id": "p1",
            "p_player_email": "jo.lin@example.edu",
        }

    async def test_no_user_found(self):
        def handler(request):
            return httpx.Response(400, json={"message": "No user found with email jo@example.edu"})

        with pytest.raises(AccountNotFoundError, match="sign up"):
            await _client(handler).link_account_to_roster("t1", "p1", "jo@example.edu")

    async def test_no_player_found(self):
        def handler(request):
            return httpx.Response(400, json={"message": "No player found"})

        with pytest.raises(RosterNotFoundError):
            await _client(handler).link_account_to_roster("t1", "p1", "jo@example.edu")

    async def test_other_error_is_wrapped(self):
        def handler(request):
            return httpx.Response(400, json={"message": "constraint violated"})

        with pytest.raises(LinkError, match="Error linking player: constraint violated"):
            await _client(handler).link_account_to_roster("t1", "p1", "jo@example.edu")

    async def test_guardian_link(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, content=b"")

        await _client(handler).link_guardian_to_roster("p1", "pat.lin@example.com")

        assert seen["path"] == "/rest/v1/rpc/link_guardian_to_player"
        assert seen["body"] == {"p_player_id": "p1", "p_guardian_email": "pat.lin@example.com"}


async def test_close_is_safe_before_use():
    client = DirectoryClient(BASE_URL)
    await client.close()


def test_factory_prefers_local_without_url():
    repo = object()
    assert isinstance(get_account_directory(repo), RepositoryDirectory)
    assert isinstance(get_account_directory(repo, directory_url=BASE_URL, use_local=True), RepositoryDirectory)
    assert isinstance(get_account_directory(repo, directory_url=BASE_URL), DirectoryClient)
