"""
Unit tests for team service.

Tests team creation, captain-only roster management, captaincy transfer,
leaving, the recruiting flag and team listings.
"""

import pytest
import pytest_asyncio
from sqlalchemy import select

from squadhub.database.models import Player, TeamMember
from squadhub.services import team_request_service, team_service
from squadhub.services.errors import (
    AlreadyOnTeam,
    CannotRemoveSelf,
    CaptainMustTransfer,
    InvalidRole,
    NotAMember,
    NotCaptain,
    TeamFull,
    TeamNotFound,
    TeamNotRecruiting,
)


async def _add_member(db_session, team_id, player_id, role="Entry"):
    """Helper: put a player on a team directly, bypassing the request workflow."""
    db_session.add(TeamMember(team_id=team_id, player_id=player_id, role=role))
    player = await db_session.get(Player, player_id)
    player.team_id = team_id
    await db_session.flush()


async def _captains(db_session, team_id):
    result = await db_session.execute(
        select(TeamMember.player_id).where(TeamMember.team_id == team_id, TeamMember.role == "IGL")
    )
    return [row[0] for row in result.all()]


@pytest_asyncio.fixture
async def team(db_session, players):
    """A team captained by alice with bob as a member."""
    created = await team_service.create_team(db_session, players["alice"], "Navi Juniors", "NAVJ")
    await _add_member(db_session, created["id"], players["bob"])
    return created


# ──────────────────────────────────────────────────────────────
# Create
# ──────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_create_team_makes_creator_captain(db_session, players):
    """Test that the creator becomes the sole IGL and the team starts recruiting."""
    result = await team_service.create_team(
        db_session, players["alice"], "  Astralis Academy ", "AST", region="EU"
    )

    assert result["name"] == "Astralis Academy"
    assert result["tag"] == "AST"
    assert result["region"] == "EU"
    assert result["is_recruiting"] is True
    assert result["rating"] == 1000
    assert result["wins"] == 0 and result["losses"] == 0
    assert result["member_count"] == 1
    assert result["members"][0]["player_id"] == players["alice"]
    assert result["members"][0]["role"] == "IGL"

    creator = await db_session.get(Player, players["alice"])
    assert creator.team_id == result["id"]


@pytest.mark.asyncio
async def test_create_team_when_already_on_team(db_session, players, team):
    """Test that a player on a team cannot create another one."""
    with pytest.raises(AlreadyOnTeam):
        await team_service.create_team(db_session, players["bob"], "Second", "SEC")


@pytest.mark.asyncio
async def test_get_team_not_found(db_session):
    """Test fetching a missing team."""
    with pytest.raises(TeamNotFound):
        await team_service.get_team(db_session, 99999)


# ──────────────────────────────────────────────────────────────
# Update
# ──────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_update_team_by_captain(db_session, players, team):
    """Test that the captain can edit team details; unknown keys are ignored."""
    result = await team_service.update_team(
        db_session,
        team["id"],
        players["alice"],
        {"name": "Renamed", "description": "New roster", "rating": 5000},
    )

    assert result["name"] == "Renamed"
    assert result["description"] == "New roster"
    assert result["rating"] == 1000


@pytest.mark.asyncio
async def test_update_team_ignores_null_for_required_fields(db_session, players, team):
    """Test that an explicit null for name, tag or is_recruiting leaves the value alone."""
    result = await team_service.update_team(
        db_session,
        team["id"],
        players["alice"],
        {"name": None, "tag": None, "is_recruiting": None, "description": None},
    )

    assert result["name"] == "Navi Juniors"
    assert result["tag"] == "NAVJ"
    assert result["is_recruiting"] is True
    assert result["description"] is None


@pytest.mark.asyncio
async def test_update_team_by_non_captain(db_session, players, team):
    """Test that a regular member cannot edit the team."""
    with pytest.raises(NotCaptain):
        await team_service.update_team(db_session, team["id"], players["bob"], {"name": "Nope"})


@pytest.mark.asyncio
async def test_reopen_recruitment_on_full_roster(db_session, players, team):
    """Test that a full roster cannot be marked recruiting again."""
    for name in ("carol", "dave", "erin"):
        await _add_member(db_session, team["id"], players[name])
    await team_service.update_team(db_session, team["id"], players["alice"], {"is_recruiting": False})

    with pytest.raises(TeamFull):
        await team_service.update_team(
            db_session, team["id"], players["alice"], {"is_recruiting": True}
        )


@pytest.mark.asyncio
async def test_close_and_reopen_recruitment(db_session, players, team):
    """Test toggling recruitment on a roster with free slots."""
    closed = await team_service.update_team(
        db_session, team["id"], players["alice"], {"is_recruiting": False}
    )
    assert closed["is_recruiting"] is False

    reopened = await team_service.update_team(
        db_session, team["id"], players["alice"], {"is_recruiting": True}
    )
    assert reopened["is_recruiting"] is True


# ──────────────────────────────────────────────────────────────
# Roles
# ──────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_update_member_role(db_session, players, team):
    """Test that the captain can set a member's role."""
    result = await team_service.update_member_role(
        db_session, team["id"], players["alice"], players["bob"], "AWPer"
    )

    assert result["player_id"] == players["bob"]
    assert result["role"] == "AWPer"


@pytest.mark.asyncio
async def test_update_member_role_cannot_grant_captain(db_session, players, team):
    """Test that IGL can only move through captaincy transfer."""
    with pytest.raises(InvalidRole):
        await team_service.update_member_role(
            db_session, team["id"], players["alice"], players["bob"], "IGL"
        )
    assert await _captains(db_session, team["id"]) == [players["alice"]]


@pytest.mark.asyncio
async def test_update_member_role_cannot_demote_captain(db_session, players, team):
    """Test that the captain's own role cannot be changed directly."""
    with pytest.raises(InvalidRole):
        await team_service.update_member_role(
            db_session, team["id"], players["alice"], players["alice"], "Support"
        )


@pytest.mark.asyncio
async def test_update_member_role_empty(db_session, players, team):
    with pytest.raises(InvalidRole):
        await team_service.update_member_role(
            db_session, team["id"], players["alice"], players["bob"], "   "
        )


@pytest.mark.asyncio
async def test_update_member_role_non_member(db_session, players, team):
    with pytest.raises(NotAMember):
        await team_service.update_member_role(
            db_session, team["id"], players["alice"], players["carol"], "Lurker"
        )


@pytest.mark.asyncio
async def test_update_member_role_by_non_captain(db_session, players, team):
    with pytest.raises(NotCaptain):
        await team_service.update_member_role(
            db_session, team["id"], players["bob"], players["bob"], "Lurker"
        )


# ──────────────────────────────────────────────────────────────
# Remove / leave
# ──────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_remove_member(db_session, players, team):
    """Test that removal deletes the membership, clears team_id and reopens recruitment."""
    await team_service.update_team(db_session, team["id"], players["alice"], {"is_recruiting": False})

    await team_service.remove_member(db_session, team["id"], players["alice"], players["bob"])

    removed = await db_session.get(Player, players["bob"])
    assert removed.team_id is None
    result = await team_service.get_team(db_session, team["id"])
    assert [m["player_id"] for m in result["members"]] == [players["alice"]]
    assert result["is_recruiting"] is True


@pytest.mark.asyncio
async def test_captain_cannot_remove_self(db_session, players, team):
    with pytest.raises(CannotRemoveSelf):
        await team_service.remove_member(db_session, team["id"], players["alice"], players["alice"])


@pytest.mark.asyncio
async def test_remove_non_member(db_session, players, team):
    with pytest.raises(NotAMember):
        await team_service.remove_member(db_session, team["id"], players["alice"], players["carol"])


@pytest.mark.asyncio
async def test_remove_member_by_non_captain(db_session, players, team):
    with pytest.raises(NotCaptain):
        await team_service.remove_member(db_session, team["id"], players["bob"], players["alice"])


@pytest.mark.asyncio
async def test_member_leaves_team(db_session, players, team):
    """Test that a regular member can leave."""
    await team_service.leave_team(db_session, team["id"], players["bob"])

    leaver = await db_session.get(Player, players["bob"])
    assert leaver.team_id is None
    result = await team_service.get_team(db_session, team["id"])
    assert result["is_recruiting"] is True


@pytest.mark.asyncio
async def test_captain_cannot_leave_with_members(db_session, players, team):
    """Test that the captain must transfer before leaving a populated team."""
    with pytest.raises(CaptainMustTransfer):
        await team_service.leave_team(db_session, team["id"], players["alice"])


@pytest.mark.asyncio
async def test_last_member_captain_can_leave(db_session, players, team):
    """Test that a captain alone on the roster can leave."""
    await team_service.leave_team(db_session, team["id"], players["bob"])
    await team_service.leave_team(db_session, team["id"], players["alice"])

    captain = await db_session.get(Player, players["alice"])
    assert captain.team_id is None
    result = await team_service.get_team(db_session, team["id"])
    assert result["members"] == []
    assert result["is_recruiting"] is False

    with pytest.raises(TeamNotRecruiting):
        await team_request_service.request_to_join(db_session, team["id"], players["carol"])


@pytest.mark.asyncio
async def test_leave_team_not_member(db_session, players, team):
    with pytest.raises(NotAMember):
        await team_service.leave_team(db_session, team["id"], players["carol"])


# ──────────────────────────────────────────────────────────────
# Captaincy transfer
# ──────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_transfer_captaincy(db_session, players, team):
    """Test that exactly one IGL exists after a transfer."""
    result = await team_service.transfer_captaincy(
        db_session, team["id"], players["alice"], players["bob"]
    )

    roles = {m["player_id"]: m["role"] for m in result["members"]}
    assert roles[players["bob"]] == "IGL"
    assert roles[players["alice"]] == "Entry"
    assert await _captains(db_session, team["id"]) == [players["bob"]]


@pytest.mark.asyncio
async def test_transfer_captaincy_to_self_is_noop(db_session, players, team):
    result = await team_service.transfer_captaincy(
        db_session, team["id"], players["alice"], players["alice"]
    )

    assert await _captains(db_session, team["id"]) == [players["alice"]]
    assert result["id"] == team["id"]


@pytest.mark.asyncio
async def test_transfer_captaincy_to_non_member(db_session, players, team):
    """Test that a failed transfer leaves the original captain in place."""
    with pytest.raises(NotAMember):
        await team_service.transfer_captaincy(
            db_session, team["id"], players["alice"], players["carol"]
        )
    assert await _captains(db_session, team["id"]) == [players["alice"]]


@pytest.mark.asyncio
async def test_transfer_captaincy_by_non_captain(db_session, players, team):
    with pytest.raises(NotCaptain):
        await team_service.transfer_captaincy(
            db_session, team["id"], players["bob"], players["bob"]
        )


# ──────────────────────────────────────────────────────────────
# Listing
# ──────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_list_teams(db_session, players, team):
    """Test listing with member counts, status filter and search."""
    other = await team_service.create_team(db_session, players["carol"], "Fnatic Rising", "FNCR")
    await team_service.update_team(db_session, other["id"], players["carol"], {"is_recruiting": False})

    everything = await team_service.list_teams(db_session)
    assert everything["total_count"] == 2
    counts = {t["id"]: t["member_count"] for t in everything["items"]}
    assert counts == {team["id"]: 2, other["id"]: 1}
    assert "members" not in everything["items"][0]

    recruiting = await team_service.list_teams(db_session, status="recruiting")
    assert [t["id"] for t in recruiting["items"]] == [team["id"]]

    full = await team_service.list_teams(db_session, status="full")
    assert [t["id"] for t in full["items"]] == [other["id"]]

    searched = await team_service.list_teams(db_session, search="fnc")
    assert [t["id"] for t in searched["items"]] == [other["id"]]


@pytest.mark.asyncio
async def test_list_teams_empty(db_session):
    result = await team_service.list_teams(db_session)
    assert result == {"items": [], "total_count": 0}
