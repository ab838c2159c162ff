from pydantic import BaseModel, EmailStr


# ── Staff accounts (admin creates) ──────────────────────────

class SignupRequest(BaseModel):
    """Admin creates a staff account for a manager, recruiter or admin."""
    email: EmailStr
    password: str
    full_name: str
    role: str = "recruiter"  # admin | manager | recruiter


class UserOut(BaseModel):
    id: str
    email: str
    full_name: str
    role: str
    is_active: bool
    must_change_password: bool = False

    model_config = {"from_attributes": True}


# ── Login ────────────────────────────────────────────────────

class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserOut
