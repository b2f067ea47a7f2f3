from __future__ import annotations

import uuid

from fastapi import Depends, HTTPException, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bpmflow.core.security import decode_access_token
from bpmflow.database import get_db
from bpmflow.models.user import User
from bpmflow.services.automation_runner import AutomationRunner


async def get_current_user(
    request: Request, db: AsyncSession = Depends(get_db)
) -> User:
    auth = request.headers.get("Authorization", "")
    if not auth.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Not authenticated")
    token = auth[7:]
    payload = decode_access_token(token)
    if payload is None:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    try:
        user_id = uuid.UUID(payload.get("sub", ""))
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid or expired token") from None
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None or not user.is_active:
        raise HTTPException(status_code=401, detail="User not found or inactive")
    return user


def require_organization(user: User) -> uuid.UUID:
    """Raise 403 unless the user belongs to an organization."""
    if user.organization_id is None:
        raise HTTPException(status_code=403, detail="User has no organization")
    return user.organization_id


def get_automation_runner() -> AutomationRunner:
    """Runner used for automations triggered by API calls; overridden in tests."""
    return AutomationRunner()
