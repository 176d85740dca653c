# hctf/routes/teams.py

import logging
import os
from typing import List

from dotenv import load_dotenv
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from hctf.audit import AuditTrail, get_audit_trail
from hctf.auth_token import (
    TokenCreationError,
    TokenService,
    get_current_team,
    get_token_service,
    require_admin,
)
from hctf.database import get_db
from hctf.models.log import Log
from hctf.models.team import Team
from hctf.responses import APIError, database_error, success
from hctf.schemas import (
    MAX_ROW_ID,
    LoginToken,
    TeamAdmin,
    TeamIdList,
    TeamLogin,
    TeamPage,
    TeamPasswordReset,
    TeamPublic,
    TeamRegister,
    TeamSelf,
)
from hctf.security import generate_password, hash_password
from hctf.services.ranking import CORRECT, rank_teams
from hctf.utils import local_now

load_dotenv()

logger = logging.getLogger(__name__)

PAGE_SIZE = 20
WELCOME_MESSAGE = os.getenv("WELCOME_MESSAGE", "Welcome to HCTF!")

# SQLite reports "table.column", Postgres the "<table>_<column>_key" constraint
EMAIL_CONSTRAINTS = ("teams.email", "teams_email_key")
TEAM_NAME_CONSTRAINTS = ("teams.team_name", "teams_team_name_key")

router = APIRouter(prefix="/api/Team", tags=["Teams"])


# -------------------------------------------------------------------
# Helpers
# -------------------------------------------------------------------

def _duplicate_name() -> APIError:
    return APIError("team_name_already_exist", "Team name already exists", status.HTTP_409_CONFLICT)


def _duplicate_email() -> APIError:
    return APIError("email_already_exist", "Email already exists", status.HTTP_409_CONFLICT)


def _conflict_from_integrity_error(exc: IntegrityError) -> APIError:
    """Tell which unique constraint a racing insert tripped over."""

    # Only the first line names the constraint; Postgres echoes the
    # offending value on the DETAIL line.
    detail = str(getattr(exc, "orig", exc)).lower()
    headline = detail.splitlines()[0] if detail else ""
    if any(token in headline for token in EMAIL_CONSTRAINTS):
        return _duplicate_email()
    if any(token in headline for token in TEAM_NAME_CONSTRAINTS):
        return _duplicate_name()
    logger.error("Unexpected integrity error on registration: %s", headline, exc_info=exc)
    return database_error()


async def _set_flag(
    db: AsyncSession,
    audit: AuditTrail,
    actor: Team,
    action: str,
    team_ids: List[int],
    **values,
):
    """Bulk-update one boolean column over the given ids; unknown ids are ignored."""

    actor_id = actor.team_id
    try:
        result = await db.execute(
            update(Team)
            .where(Team.team_id.in_(team_ids))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        event = audit.record(
            db, action, actor=actor, targets=team_ids, detail=f"{result.rowcount} team(s) affected"
        )
        await db.commit()
    except SQLAlchemyError:
        logger.exception("Bulk update %s failed for teams %s", action, team_ids)
        audit.failed(action, actor_id=actor_id, targets=team_ids)
        raise database_error()

    audit.announce(event)
    return success()


# -------------------------------------------------------------------
# Authentication
# -------------------------------------------------------------------

@router.post("/login")
async def login(
    payload: TeamLogin,
    db: AsyncSession = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
):
    try:
        team = await tokens.attempt(db, payload.email, payload.password)
    except SQLAlchemyError:
        logger.exception("Credential lookup failed")
        raise database_error()

    if team is None:
        raise APIError("invalid_email_or_password", "Email and password do not match", status.HTTP_401_UNAUTHORIZED)
    if team.banned:
        raise APIError("team_banned", "This team has been banned", status.HTTP_403_FORBIDDEN)

    try:
        access_token = tokens.issue(team)
    except TokenCreationError:
        logger.exception("Could not create a token for team %s", team.team_id)
        raise APIError(
            "failed_to_create_token", "Could not create authentication token", status.HTTP_500_INTERNAL_SERVER_ERROR
        )

    return success(LoginToken(access_token=access_token))


@router.post("/register")
async def register(
    payload: TeamRegister,
    db: AsyncSession = Depends(get_db),
    audit: AuditTrail = Depends(get_audit_trail),
):
    try:
        conflict = (
            await db.execute(
                select(Team).where(
                    or_(Team.team_name == payload.team_name, Team.email == payload.email)
                )
            )
        ).scalars().first()
        if conflict:
            if conflict.email == payload.email:
                raise _duplicate_email()
            raise _duplicate_name()

        now = local_now()
        team = Team(
            team_name=payload.team_name,
            email=payload.email,
            password=hash_password(payload.password),
            sign_up_time=now,
            last_login_time=now,
        )
        db.add(team)
        await db.flush()  # populate team.team_id

        event = audit.record(db, "team.register", actor=team, targets=[team.team_id])
        await db.commit()
    except IntegrityError as exc:
        conflict_error = _conflict_from_integrity_error(exc)
        audit.failed("team.register", reason=conflict_error.code)
        raise conflict_error
    except SQLAlchemyError:
        logger.exception("Failed to register team %r", payload.team_name)
        audit.failed("team.register")
        raise database_error()

    audit.announce(event)
    return success({"msg": WELCOME_MESSAGE})


@router.get("/info")
async def get_auth_info(
    db: AsyncSession = Depends(get_db),
    team: Team = Depends(get_current_team),
):
    team_id = team.team_id
    try:
        team.last_login_time = local_now()
        await db.commit()
        await db.refresh(team)
    except SQLAlchemyError:
        logger.exception("Failed to refresh last login of team %s", team_id)
        raise database_error()

    return success(TeamSelf.model_validate(team))


# -------------------------------------------------------------------
# Listings
# -------------------------------------------------------------------

@router.get("/list")
async def list_teams(
    page: int = Query(1, ge=1, le=MAX_ROW_ID // PAGE_SIZE),
    db: AsyncSession = Depends(get_db),
    _: Team = Depends(require_admin),
):
    try:
        teams = (
            await db.execute(
                select(Team)
                .options(selectinload(Team.logs))
                .order_by(Team.team_id)
                .offset((page - 1) * PAGE_SIZE)
                .limit(PAGE_SIZE)
            )
        ).scalars().all()
        total = await db.scalar(select(func.count(Team.team_id)))
    except SQLAlchemyError:
        logger.exception("Failed to list teams (page %s)", page)
        raise database_error()

    return success(
        TeamPage(total=total or 0, teams=[TeamAdmin.model_validate(t) for t in teams])
    )


@router.post("/publicList")
async def public_list_teams(
    payload: TeamIdList,
    db: AsyncSession = Depends(get_db),
):
    try:
        teams = (
            await db.execute(
                select(Team)
                .options(selectinload(Team.logs.and_(Log.status == CORRECT)))
                .where(Team.team_id.in_(payload.team_id))
                .order_by(Team.team_id)
            )
        ).scalars().all()
    except SQLAlchemyError:
        logger.exception("Failed to look up teams %s", payload.team_id)
        raise database_error()

    return success([TeamPublic.model_validate(t) for t in teams])


@router.get("/ranking")
async def get_ranking(db: AsyncSession = Depends(get_db)):
    try:
        ranking = await rank_teams(db)
    except SQLAlchemyError:
        logger.exception("Failed to compute the ranking")
        raise database_error()

    return success(ranking)


# -------------------------------------------------------------------
# Moderation
# -------------------------------------------------------------------

@router.post("/ban")
async def ban_teams(
    payload: TeamIdList,
    db: AsyncSession = Depends(get_db),
    admin: Team = Depends(require_admin),
    audit: AuditTrail = Depends(get_audit_trail),
):
    return await _set_flag(db, audit, admin, "team.ban", payload.team_id, banned=True)


@router.post("/unban")
async def unban_teams(
    payload: TeamIdList,
    db: AsyncSession = Depends(get_db),
    admin: Team = Depends(require_admin),
    audit: AuditTrail = Depends(get_audit_trail),
):
    return await _set_flag(db, audit, admin, "team.unban", payload.team_id, banned=False)


@router.post("/setAdmin")
async def set_admin(
    payload: TeamIdList,
    db: AsyncSession = Depends(get_db),
    admin: Team = Depends(require_admin),
    audit: AuditTrail = Depends(get_audit_trail),
):
    return await _set_flag(db, audit, admin, "team.set_admin", payload.team_id, admin=True)


@router.post("/forceResetPassword")
async def force_reset_password(
    payload: TeamPasswordReset,
    db: AsyncSession = Depends(get_db),
    admin: Team = Depends(require_admin),
    audit: AuditTrail = Depends(get_audit_trail),
):
    actor_id = admin.team_id
    try:
        team = await db.get(Team, payload.team_id)
        if team is None:
            raise APIError("team_not_found", "Team does not exist", status.HTTP_404_NOT_FOUND)

        new_password = generate_password()
        team.password = hash_password(new_password)
        event = audit.record(db, "team.force_reset_password", actor=admin, targets=[team.team_id])
        await db.commit()
    except SQLAlchemyError:
        logger.exception("Failed to reset the password of team %s", payload.team_id)
        audit.failed("team.force_reset_password", actor_id=actor_id, targets=[payload.team_id])
        raise database_error()

    audit.announce(event)
    return success({"newPassword": new_password})
