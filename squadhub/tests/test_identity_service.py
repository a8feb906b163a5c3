"""
Unit tests for identity service.

Tests first-sight player creation, idempotent resolution, claiming
pre-registered Steam players, degraded mode and the auth provider client.
"""

import httpx
import pytest
from sqlalchemy import select, func
from sqlalchemy.exc import OperationalError

from conftest import create_player
from squadhub.database.models import Player
from squadhub.services import identity_service
from squadhub.services.errors import StoreUnavailable, Unauthenticated
from squadhub.services.identity_service import DegradedIdentity, ExternalIdentity


async def _player_count(db_session):
    result = await db_session.execute(select(func.count(Player.id)))
    return result.scalar_one()


@pytest.mark.asyncio
async def test_resolve_without_identity_raises(db_session):
    """Test that a call with no external session is unauthenticated."""
    with pytest.raises(Unauthenticated):
        await identity_service.resolve_current_player(db_session, None)


@pytest.mark.asyncio
async def test_first_resolution_creates_player(db_session):
    """Test that a first-time identity gets a player with defaults from metadata."""
    identity = ExternalIdentity(
        external_id="abc123xyz",
        metadata={"nickname": "s1mple", "avatar_url": "https://cdn.example/a.png", "city": "Kyiv"},
    )

    player = await identity_service.resolve_current_player(db_session, identity)

    assert isinstance(player, Player)
    assert player.auth_id == "abc123xyz"
    assert player.display_name == "s1mple"
    assert player.avatar_url == "https://cdn.example/a.png"
    assert player.city == "Kyiv"
    assert player.rating == 1000
    assert player.team_id is None


@pytest.mark.asyncio
async def test_display_name_falls_back_to_id_prefix(db_session):
    """Test that a player with no name metadata is called Player_<first five chars>."""
    identity = ExternalIdentity(external_id="76561198000000000", metadata={})

    player = await identity_service.resolve_current_player(db_session, identity)

    assert player.display_name == "Player_76561"


@pytest.mark.asyncio
async def test_resolution_is_idempotent(db_session):
    """Test that resolving the same identity twice returns the same row."""
    identity = ExternalIdentity(external_id="same-user", metadata={"full_name": "Same User"})

    first = await identity_service.resolve_current_player(db_session, identity)
    second = await identity_service.resolve_current_player(db_session, identity)

    assert first.id == second.id
    assert await _player_count(db_session) == 1


@pytest.mark.asyncio
async def test_existing_player_is_returned_unchanged(db_session):
    """Test that metadata changes do not overwrite a stored profile."""
    existing = await create_player(db_session, "Stored Name", auth_id="known-user")
    identity = ExternalIdentity(external_id="known-user", metadata={"nickname": "New Nick"})

    player = await identity_service.resolve_current_player(db_session, identity)

    assert player.id == existing.id
    assert player.display_name == "Stored Name"


@pytest.mark.asyncio
async def test_pre_registered_steam_player_is_claimed(db_session):
    """Test that an unclaimed player with the same Steam id is linked instead of duplicated."""
    pre_registered = await create_player(db_session, "Steam Guy", steam_id="76561198012345678")
    identity = ExternalIdentity(
        external_id="fresh-auth-id", metadata={"steam_id": "76561198012345678"}
    )

    player = await identity_service.resolve_current_player(db_session, identity)

    assert player.id == pre_registered.id
    assert player.auth_id == "fresh-auth-id"
    assert await _player_count(db_session) == 1


@pytest.mark.asyncio
async def test_concurrent_first_resolution_returns_winner(db_session, monkeypatch):
    """Test that losing the insert race returns the row created by the winner."""
    winner = await create_player(db_session, "Winner", auth_id="racing-user")

    real_lookup = identity_service.get_player_by_auth_id
    calls = {"count": 0}

    async def lookup_missing_first(session, auth_id):
        calls["count"] += 1
        if calls["count"] == 1:
            return None
        return await real_lookup(session, auth_id)

    monkeypatch.setattr(identity_service, "get_player_by_auth_id", lookup_missing_first)

    identity = ExternalIdentity(external_id="racing-user", metadata={"nickname": "Loser"})
    player = await identity_service.resolve_current_player(db_session, identity)

    assert player.id == winner.id
    assert await _player_count(db_session) == 1


@pytest.mark.asyncio
async def test_store_failure_returns_degraded_identity(db_session, monkeypatch):
    """Test that an unreachable store yields an unpersisted degraded profile."""

    async def unreachable(session, auth_id):
        raise OperationalError("SELECT", {}, Exception("connection refused"))

    monkeypatch.setattr(identity_service, "get_player_by_auth_id", unreachable)

    identity = ExternalIdentity(external_id="offline-user", metadata={"name": "Offline"})
    player = await identity_service.resolve_current_player(db_session, identity)

    assert isinstance(player, DegradedIdentity)
    assert player.external_id == "offline-user"
    assert player.display_name == "Offline"
    assert player.rating == 1000

    formatted = identity_service.format_player(player)
    assert formatted["degraded"] is True
    assert formatted["id"] is None


def test_format_player_stored(monkeypatch):
    """Test formatting a stored player."""
    player = Player(
        id=7,
        auth_id="a",
        display_name="Seven",
        rating=1200,
        matches_played=3,
        matches_won=2,
        matches_lost=1,
    )

    formatted = identity_service.format_player(player)

    assert formatted["id"] == 7
    assert formatted["display_name"] == "Seven"
    assert formatted["degraded"] is False


# ──────────────────────────────────────────────────────────────
# Auth provider client
# ──────────────────────────────────────────────────────────────


def _install_transport(monkeypatch, handler):
    """Route httpx.AsyncClient through a MockTransport."""
    real_client = httpx.AsyncClient

    def client_factory(*args, **kwargs):
        kwargs["transport"] = httpx.MockTransport(handler)
        return real_client(*args, **kwargs)

    monkeypatch.setattr(identity_service.httpx, "AsyncClient", client_factory)


@pytest.mark.asyncio
async def test_get_current_user_returns_identity(monkeypatch):
    """Test that a live session maps to an ExternalIdentity."""

    def handler(request):
        assert request.headers["Authorization"] == "Bearer good-token"
        assert request.url.path == "/auth/v1/user"
        return httpx.Response(200, json={"id": "user-1", "user_metadata": {"nickname": "ace"}})

    _install_transport(monkeypatch, handler)

    identity = await identity_service.get_current_user("good-token")

    assert identity.external_id == "user-1"
    assert identity.metadata == {"nickname": "ace"}


@pytest.mark.asyncio
async def test_get_current_user_rejected_token(monkeypatch):
    """Test that an invalid token yields no identity."""
    _install_transport(monkeypatch, lambda request: httpx.Response(401, json={}))

    assert await identity_service.get_current_user("bad-token") is None


@pytest.mark.asyncio
async def test_get_current_user_empty_token():
    """Test that an empty token short-circuits without a request."""
    assert await identity_service.get_current_user("") is None


@pytest.mark.asyncio
async def test_get_current_user_provider_down(monkeypatch):
    """Test that provider server errors surface as StoreUnavailable."""
    _install_transport(monkeypatch, lambda request: httpx.Response(503, json={}))

    with pytest.raises(StoreUnavailable):
        await identity_service.get_current_user("any-token")


@pytest.mark.asyncio
async def test_get_current_user_connection_error(monkeypatch):
    """Test that transport failures surface as StoreUnavailable."""

    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    _install_transport(monkeypatch, handler)

    with pytest.raises(StoreUnavailable):
        await identity_service.get_current_user("any-token")
