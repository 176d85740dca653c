# hctf/services/ranking.py
from __future__ import annotations

from typing import List

from sqlalchemy import asc, case, desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from hctf.models.log import Log
from hctf.models.team import Team
from hctf.schemas import RankingEntry

CORRECT = "correct"
RANKING_SIZE = 20


def _rank_rows(rows) -> List[RankingEntry]:
    """Assign ranks; equal (score, last_solve_at) share one."""

    ranked, prev_key, rank = [], None, 0
    for r in rows:
        key = (r.score, r.last_solve_at)
        if key != prev_key:
            rank = len(ranked) + 1
            prev_key = key
        ranked.append(
            RankingEntry(rank=rank, team_id=r.team_id, team_name=r.team_name, score=r.score)
        )
    return ranked


async def rank_teams(db: AsyncSession, limit: int = RANKING_SIZE) -> List[RankingEntry]:
    """
    Leaderboard of non-admin teams:
      - score is the sum of the team's correct submissions;
      - ties go to the team that reached its score first;
      - teams without a correct submission come last, by id.
    """

    solves = (
        select(
            Log.team_id.label("team_id"),
            func.sum(Log.score).label("score"),
            func.max(Log.created_at).label("last_solve_at"),
        )
        .where(Log.status == CORRECT)
        .group_by(Log.team_id)
        .subquery("solves")
    )

    score = func.coalesce(solves.c.score, 0).label("score")
    stmt = (
        select(
            Team.team_id,
            Team.team_name,
            score,
            solves.c.last_solve_at.label("last_solve_at"),
        )
        .outerjoin(solves, solves.c.team_id == Team.team_id)
        .where(Team.admin == False)  # noqa: E712
        .order_by(
            desc(score),
            case((solves.c.last_solve_at.is_(None), 1), else_=0),
            asc(solves.c.last_solve_at),
            asc(Team.team_id),
        )
        .limit(limit)
    )
    rows = (await db.execute(stmt)).all()
    return _rank_rows(rows)
