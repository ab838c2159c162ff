"""Staff auth routes.

Route overview:
  POST /login   email + password login for admins, managers and recruiters
  POST /signup  admin creates a staff account (requires auth)
  GET  /me      return the current staff profile
"""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.deps import get_current_user, require_role
from app.auth.jwt import create_access_token
from app.auth.password import hash_password, verify_password
from app.database import get_db
from app.models.staff_user import StaffRole, StaffUser
from app.schemas.auth import LoginRequest, SignupRequest, TokenResponse, UserOut
from app.utils.activity import log_activity

router = APIRouter()


def _build_token_response(user: StaffUser) -> TokenResponse:
    return TokenResponse(
        access_token=create_access_token(user_id=user.id, role=user.role),
        user=UserOut.model_validate(user),
    )


# ── POST /login ──────────────────────────────────────────────

@router.post("/login", response_model=TokenResponse)
async def login(body: LoginRequest, db: AsyncSession = Depends(get_db)):
    """Email + password login. Returns a JWT carrying the staff role."""
    result = await db.execute(select(StaffUser).where(StaffUser.email == body.email.lower()))
    user = result.scalar_one_or_none()
    if not user or not verify_password(body.password, user.hashed_password):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    if not user.is_active:
        raise HTTPException(status_code=403, detail="Account deactivated")

    return _build_token_response(user)


# ── POST /signup (admin creates a staff user) ───────────────

@router.post("/signup", response_model=UserOut, status_code=status.HTTP_201_CREATED)
async def signup(
    body: SignupRequest,
    db: AsyncSession = Depends(get_db),
    admin: StaffUser = Depends(require_role(StaffRole.ADMIN)),
):
    try:
        role = StaffRole(body.role)
    except ValueError:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid role. Choose: {', '.join(r.value for r in StaffRole)}",
        )

    email = body.email.lower()
    existing = await db.execute(select(StaffUser).where(StaffUser.email == email))
    if existing.scalar_one_or_none():
        raise HTTPException(status_code=400, detail="Email already registered")

    user = StaffUser(
        email=email,
        hashed_password=hash_password(body.password),
        full_name=body.full_name,
        role=role.value,
        must_change_password=True,
    )
    db.add(user)
    await db.flush()

    await log_activity(
        db, admin, action="created", entity_type="staff_user",
        entity_id=user.id, summary=f"Created {role.value} account for {email}",
    )
    return UserOut.model_validate(user)


# ── GET /me ──────────────────────────────────────────────────

@router.get("/me", response_model=UserOut)
async def me(user: StaffUser = Depends(get_current_user)):
    return UserOut.model_validate(user)
