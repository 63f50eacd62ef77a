from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordRequestForm
from pymongo.database import Database

from school_portal.core.database import get_db
from school_portal.core.security import (
    ACCESS_TOKEN_EXPIRE_MINUTES,
    create_access_token,
    get_current_active_user,
    get_current_user,
    get_password_hash,
    user_permissions,
    verify_password,
)
from school_portal.models.user_schemas import SessionStatus, Token, UserCreate, UserResponse
from school_portal.repositories.session_repository import SessionRepository
from school_portal.repositories.settings_repository import SettingsRepository
from school_portal.services.audit_log import AuditLogService, audit
from school_portal.services.password_policy import check_password

router = APIRouter(prefix="/auth", tags=["Authentication"])


def to_user_response(doc: dict, permissions=None) -> UserResponse:
    return UserResponse(
        id=str(doc["_id"]),
        email=doc["email"],
        firstName=doc.get("firstName", ""),
        lastName=doc.get("lastName", ""),
        roles=doc.get("roles", []),
        permissions=permissions if permissions is not None else doc.get("permissions", []),
        isActive=doc.get("isActive", True),
    )


def _session_status(timer) -> SessionStatus:
    remaining = timer.seconds_remaining()
    return SessionStatus(
        state=timer.state.value,
        secondsRemaining=remaining,
        idleTimeoutMinutes=int(timer.idle_seconds // 60),
        warningCountdownSeconds=int(timer.countdown_seconds),
    )


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def register_user(user: UserCreate, request: Request, db: Database = Depends(get_db)):
    settings = SettingsRepository(db).get()
    if not settings["allowRegistration"]:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Registration is disabled")
    email = user.email.lower()
    if db["users"].find_one({"email": email}):
        raise HTTPException(status_code=400, detail="Email already registered")
    check_password(user.password, settings)

    now = datetime.now(timezone.utc)
    user_dict = {
        "email": email,
        "hashed_password": get_password_hash(user.password),
        "firstName": user.firstName,
        "lastName": user.lastName,
        # requested roles are ignored on self-registration
        "roles": [settings["defaultUserRole"]],
        "isActive": True,
        "createdAt": now,
        "updatedAt": now,
    }
    user_dict["_id"] = db["users"].insert_one(user_dict).inserted_id
    audit(db, request, user_dict, "auth.register", "auth", str(user_dict["_id"]))
    return to_user_response(user_dict, permissions=[])


@router.post("/login", response_model=Token)
def login(request: Request, form_data: OAuth2PasswordRequestForm = Depends(), db: Database = Depends(get_db)):
    user = db["users"].find_one({"email": form_data.username.lower()})
    if not user or not verify_password(form_data.password, user["hashed_password"]):
        AuditLogService(db).log_failure(
            {"email": form_data.username}, "auth.login", "auth", "Incorrect email or password",
            ip_address=request.client.host if request.client else None,
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.get("isActive", True):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is deactivated",
        )

    if SettingsRepository(db).get()["maintenanceMode"] and "settings.manage" not in user_permissions(db, user):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="The portal is in maintenance mode",
        )

    session_id = SessionRepository(db).start(str(user["_id"]))
    access_token = create_access_token(
        data={"sub": str(user["_id"]), "roles": user.get("roles", []), "sid": session_id},
        expires_delta=timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES),
    )
    db["users"].update_one({"_id": user["_id"]}, {"$set": {"lastLogin": datetime.now(timezone.utc)}})
    audit(db, request, user, "auth.login", "auth", str(user["_id"]))

    return {"access_token": access_token, "token_type": "bearer"}


@router.post("/logout")
def logout(request: Request, current_user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    SessionRepository(db).end(current_user["sid"])
    audit(db, request, current_user, "auth.logout", "auth", str(current_user["_id"]))
    return {"status": "success", "detail": "Logged out."}


@router.get("/me", response_model=UserResponse)
def get_me(current_user: dict = Depends(get_current_active_user)):
    return to_user_response(current_user)


@router.get("/session", response_model=SessionStatus)
def get_session(current_user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    """
    Idle-timer state for the client countdown. Polling this endpoint does not
    count as user activity.
    """
    timer = SessionRepository(db).load(current_user["sid"])
    return _session_status(timer)


@router.post("/session/extend", response_model=SessionStatus)
def extend_session(current_user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    sessions = SessionRepository(db)
    timer = sessions.load(current_user["sid"])
    timer.extend()
    sessions.save(current_user["sid"], timer)
    return _session_status(timer)
