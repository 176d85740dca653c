"""Admin endpoints for managing levels inside categories."""

import logging
import re
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from hctf.audit import AuditTrail, get_audit_trail
from hctf.auth_token import require_admin
from hctf.database import get_db
from hctf.models.category import Category
from hctf.models.challenge import Challenge
from hctf.models.level import Level
from hctf.models.team import Team
from hctf.responses import APIError, database_error, success
from hctf.schemas import (
    LevelCreate,
    LevelDelete,
    LevelDetail,
    LevelRead,
    LevelReleaseTimeUpdate,
    LevelRename,
    LevelRulesUpdate,
    MAX_ROW_ID,
)
from hctf.utils import as_naive_utc, format_timestamp

router = APIRouter(prefix="/api/Level", tags=["Admin: Levels"])
logger = logging.getLogger(__name__)

_INT_TEXT_RE = re.compile(r"-?[0-9]{1,19}")


def _level_not_found() -> APIError:
    return APIError("level_not_found", "Level does not exist", status.HTTP_404_NOT_FOUND)


def _coerce_id(value: Any) -> Optional[int]:
    """Integer identifier from loosely typed input; None if it cannot name a row."""

    if isinstance(value, bool):
        return None
    if isinstance(value, str) and _INT_TEXT_RE.fullmatch(value.strip()):
        value = int(value.strip())
    if isinstance(value, int) and 1 <= value <= MAX_ROW_ID:
        return value
    return None


async def _get_level(db: AsyncSession, level_id: Optional[int]) -> Level:
    level = await db.get(Level, level_id) if level_id is not None else None
    if level is None:
        raise _level_not_found()
    return level


@router.post("/create")
async def create_level(
    payload: LevelCreate,
    db: AsyncSession = Depends(get_db),
    admin: Team = Depends(require_admin),
    audit: AuditTrail = Depends(get_audit_trail),
):
    actor_id = admin.team_id
    try:
        category = await db.get(Category, payload.category_id)
        if category is None:
            raise APIError("category_not_found", "Category does not exist", status.HTTP_404_NOT_FOUND)

        level = Level(
            category_id=category.category_id,
            level_name=payload.level_name,
            release_time=as_naive_utc(payload.release_time),
            rules=[],
        )
        db.add(level)
        await db.flush()  # populate level.level_id

        event = audit.record(
            db,
            "level.create",
            actor=admin,
            targets=[level.level_id],
            detail=f"'{level.level_name}' in category '{category.category_name}'",
        )
        await db.commit()
        await db.refresh(level)
    except SQLAlchemyError:
        logger.exception("Failed to create level in category %s", payload.category_id)
        audit.failed("level.create", actor_id=actor_id, targets=[payload.category_id])
        raise database_error()

    audit.announce(event)
    return success(LevelRead.model_validate(level))


@router.get("/info")
async def level_info(
    level_id: int = Query(..., alias="levelId", ge=1, le=MAX_ROW_ID),
    db: AsyncSession = Depends(get_db),
    _: Team = Depends(require_admin),
):
    try:
        result = await db.execute(
            select(Level)
            .options(selectinload(Level.challenges))
            .where(Level.level_id == level_id)
        )
        level = result.scalar_one_or_none()
    except SQLAlchemyError:
        logger.exception("Failed to load level %s", level_id)
        raise database_error()

    if level is None:
        raise _level_not_found()
    return success(LevelDetail.model_validate(level))


@router.post("/setName")
async def set_level_name(
    payload: LevelRename,
    db: AsyncSession = Depends(get_db),
    admin: Team = Depends(require_admin),
    audit: AuditTrail = Depends(get_audit_trail),
):
    actor_id = admin.team_id
    try:
        level = await _get_level(db, payload.level_id)
        level.level_name = payload.level_name
        event = audit.record(
            db, "level.rename", actor=admin, targets=[level.level_id], detail=f"renamed to '{level.level_name}'"
        )
        await db.commit()
        await db.refresh(level)
    except SQLAlchemyError:
        logger.exception("Failed to rename level %s", payload.level_id)
        audit.failed("level.rename", actor_id=actor_id, targets=[payload.level_id])
        raise database_error()

    audit.announce(event)
    return success(LevelRead.model_validate(level))


@router.post("/setReleaseTime")
async def set_level_release_time(
    payload: LevelReleaseTimeUpdate,
    db: AsyncSession = Depends(get_db),
    admin: Team = Depends(require_admin),
    audit: AuditTrail = Depends(get_audit_trail),
):
    actor_id = admin.team_id
    try:
        level = await _get_level(db, payload.level_id)
        level.release_time = as_naive_utc(payload.release_time)
        event = audit.record(
            db,
            "level.set_release_time",
            actor=admin,
            targets=[level.level_id],
            detail=f"release at {format_timestamp(level.release_time)} UTC",
        )
        await db.commit()
        await db.refresh(level)
    except SQLAlchemyError:
        logger.exception("Failed to change release time of level %s", payload.level_id)
        audit.failed("level.set_release_time", actor_id=actor_id, targets=[payload.level_id])
        raise database_error()

    audit.announce(event)
    return success(LevelRead.model_validate(level))


@router.post("/setRules")
async def set_level_rules(
    payload: LevelRulesUpdate,
    db: AsyncSession = Depends(get_db),
    admin: Team = Depends(require_admin),
    audit: AuditTrail = Depends(get_audit_trail),
):
    actor_id = admin.team_id
    try:
        level = await _get_level(db, payload.level_id)
        level.rules = payload.rules
        event = audit.record(db, "level.set_rules", actor=admin, targets=[level.level_id])
        await db.commit()
        await db.refresh(level)
    except SQLAlchemyError:
        logger.exception("Failed to change rules of level %s", payload.level_id)
        audit.failed("level.set_rules", actor_id=actor_id, targets=[payload.level_id])
        raise database_error()

    audit.announce(event)
    return success(LevelRead.model_validate(level))


@router.post("/deleteLevel")
async def delete_level(
    payload: LevelDelete,
    db: AsyncSession = Depends(get_db),
    admin: Team = Depends(require_admin),
    audit: AuditTrail = Depends(get_audit_trail),
):
    actor_id = admin.team_id
    level_id = _coerce_id(payload.level_id)
    try:
        level = await _get_level(db, level_id)

        challenges = await db.scalar(
            select(func.count(Challenge.challenge_id)).where(Challenge.level_id == level.level_id)
        )
        if challenges:
            raise APIError("level_not_empty", "Level still has challenges", status.HTTP_403_FORBIDDEN)

        await db.delete(level)
        event = audit.record(db, "level.delete", actor=admin, targets=[level_id])
        await db.commit()
    except SQLAlchemyError:
        logger.exception("Failed to delete level %s", level_id)
        audit.failed("level.delete", actor_id=actor_id, targets=[level_id])
        raise database_error()

    audit.announce(event)
    return success()
