"""
Player ranking queries.
"""

from typing import Dict
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from squadhub.database.models import Player, Team


async def get_player_rankings(session: AsyncSession, limit: int = 50, offset: int = 0) -> Dict:
    """
    Get players ordered by rating (highest first), with their team tag.

    Args:
        session: Database session
        limit: Max results
        offset: Pagination offset

    Returns:
        Dict with items (ranked player dicts) and total_count
    """
    count_result = await session.execute(select(func.count(Player.id)))
    total_count = count_result.scalar_one() or 0

    result = await session.execute(
        select(
            Player.id,
            Player.display_name,
            Player.avatar_url,
            Player.rating,
            Player.matches_played,
            Player.matches_won,
            Player.matches_lost,
            Team.tag.label("team_tag"),
        )
        .outerjoin(Team, Player.team_id == Team.id)
        .order_by(Player.rating.desc(), Player.matches_won.desc(), Player.id.asc())
        .limit(limit)
        .offset(offset)
    )

    items = []
    for position, row in enumerate(result.all(), start=offset + 1):
        win_rate = row.matches_won / row.matches_played if row.matches_played else 0.0
        items.append({
            "rank": position,
            "player_id": row.id,
            "display_name": row.display_name,
            "avatar_url": row.avatar_url,
            "rating": row.rating,
            "matches_played": row.matches_played,
            "matches_won": row.matches_won,
            "matches_lost": row.matches_lost,
            "win_rate": round(win_rate, 3),
            "team_tag": row.team_tag,
        })
    return {"items": items, "total_count": total_count}
