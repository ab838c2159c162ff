"""FastAPI dependencies for staff authentication and authorization.

Dependencies:
  get_current_user   → decode JWT, load staff user from DB, return StaffUser
  require_role(...)  → restrict to specific staff roles

Applicants never authenticate; the wizard is keyed by its submission id.
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.jwt import decode_token
from app.database import get_db
from app.models.staff_user import StaffRole, StaffUser

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")


# ── Core user dependency ────────────────────────────────────

async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> StaffUser:
    """Decode the JWT, load the staff user, and return it."""
    payload = decode_token(token)
    user_id: str | None = payload.get("sub")
    if not user_id or payload.get("type") != "access":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    result = await db.execute(select(StaffUser).where(StaffUser.id == user_id))
    user = result.scalar_one_or_none()
    if not user or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive",
        )
    return user


# ── Role-based access control ───────────────────────────────

def require_role(*roles: StaffRole):
    """Dependency factory: restrict to one or more staff roles.

    Usage:
        @router.get("/webhooks")
        async def list_webhooks(user: StaffUser = Depends(require_role(StaffRole.ADMIN))):
            ...
    """
    allowed = {r.value for r in roles}

    async def _check(user: StaffUser = Depends(get_current_user)) -> StaffUser:
        if user.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Requires role: {', '.join(sorted(allowed))}",
            )
        return user

    return _check
