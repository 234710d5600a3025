from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from pelangi.core.config import settings
from pelangi.core.current_user import get_current_user
from pelangi.core.deps import get_db
from pelangi.core.security import create_access_token, verify_password
from pelangi.models.user import User, UserStatus
from pelangi.schemas.auth import LoginRequest, Token
from pelangi.schemas.common import ApiResponse, ok
from pelangi.schemas.user import AccessibleClass, PermissionsRead, UserRead
from pelangi.services.access import accessible_content, get_user_permissions

router = APIRouter()


@router.post(
    "/login",
    response_model=Token,
    responses={
        401: {"description": "Invalid email or password"},
    },
)
def login(payload: LoginRequest, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == payload.email).first()
    if not user or user.status != UserStatus.ACTIVE:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )

    if not verify_password(payload.password, user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )

    access_token = create_access_token(
        data={"sub": str(user.id), "role": user.role.value},
        expires_delta=settings.access_token_expire,
    )

    return {
        "access_token": access_token,
        "token_type": "bearer",
    }


@router.get("/me", response_model=ApiResponse[UserRead])
def me(current_user: User = Depends(get_current_user)):
    return ok(current_user)


@router.get("/me/permissions", response_model=ApiResponse[PermissionsRead])
def my_permissions(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return ok(get_user_permissions(db, current_user))


@router.get("/me/accessible-content", response_model=ApiResponse[list[AccessibleClass]])
def my_accessible_content(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return ok(accessible_content(db, current_user))
