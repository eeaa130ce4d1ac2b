from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from datetime import datetime, timedelta, timezone
from typing import NamedTuple, Optional
from database import db as raw_db, NOTIFICATIONS
from exceptions import InternTrackError, ProjectNotFoundError
from models.task import PermissionResult, TaskModel
from models.user import CurrentUser
from utils.directory import RecipientDirectory, TaskDirectory
from utils.notification_store import NotificationStore
from utils.notification_stream import NotificationStream, notification_stream
from utils.notifications import NotificationService
from utils.task_permissions import TaskAccessControl
from logging_config import get_logger
from config import config

logger = get_logger("auth")

# Config from central config
SECRET_KEY = config.SECRET_KEY
ALGORITHM = config.ALGORITHM
ACCESS_TOKEN_EXPIRE_MINUTES = config.ACCESS_TOKEN_EXPIRE_MINUTES

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="api/auth/login")

def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    """Tokens carry ``sub`` (account id) and ``kind`` (recipient kind)."""
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)
    return encoded_jwt

def get_db():
    """Database handle; tests override this dependency."""
    return raw_db

def get_notification_stream() -> NotificationStream:
    return notification_stream

async def get_current_user(token: str = Depends(oauth2_scheme), db=Depends(get_db)) -> CurrentUser:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        user_id: str = payload.get("sub")
        kind: str = payload.get("kind")
        if user_id is None or kind is None:
            logger.warning("Token decoded but missing 'sub' or 'kind' claim")
            raise credentials_exception
    except JWTError as e:
        logger.warning(f"JWT decode failed: {e}")
        raise credentials_exception

    recipient = await RecipientDirectory(db).resolve_recipient(user_id, kind)
    if recipient is None:
        logger.warning(f"Token valid but account not found in DB", extra={"data": {"user_id": user_id, "kind": kind}})
        raise credentials_exception

    return CurrentUser.from_recipient(recipient)


# ─── Service wiring ──────────────────────────────────────────────────────────

def get_notification_service(
    db=Depends(get_db),
    stream: NotificationStream = Depends(get_notification_stream),
) -> NotificationService:
    return NotificationService(NotificationStore(db[NOTIFICATIONS]), RecipientDirectory(db), stream)

def get_task_access(
    db=Depends(get_db),
    service: NotificationService = Depends(get_notification_service),
) -> TaskAccessControl:
    return TaskAccessControl(TaskDirectory(db), RecipientDirectory(db), service)


# ─── Centralized RBAC Helpers ────────────────────────────────────────────────

def require_kind(*allowed_kinds):
    """Dependency that checks the current account is one of the allowed kinds."""
    async def checker(current_user: CurrentUser = Depends(get_current_user)):
        if current_user.kind not in allowed_kinds:
            logger.warning(
                f"Access denied: requires {allowed_kinds}",
                extra={"data": {"user_id": current_user.id, "kind": current_user.kind}}
            )
            raise HTTPException(status_code=403, detail="Insufficient permissions")
        return current_user
    return checker


class TaskAccess(NamedTuple):
    task: TaskModel
    permission: PermissionResult
    user: CurrentUser


def require_task_permission(action: str):
    """Load the task and resolve the caller's permission for ``action``.

    401 unauthenticated, 404 unknown task, 403 no permission, 500 when the
    permission could not be determined.
    """
    async def checker(
        task_id: str,
        current_user: CurrentUser = Depends(get_current_user),
        db=Depends(get_db),
        access: TaskAccessControl = Depends(get_task_access),
    ) -> TaskAccess:
        task = await TaskDirectory(db).get_task(task_id)
        try:
            permission = await access.check_permission(task, current_user.id, current_user.kind, action, current_user.role)
        except ProjectNotFoundError as exc:
            logger.error(f"Task permission check failed: {exc}", extra={"data": {"task_id": task_id}})
            raise InternTrackError("Could not determine task permission", code="PERMISSION_CHECK_FAILED") from exc

        if permission is None:
            raise HTTPException(status_code=403, detail="You do not have permission to perform this action")
        return TaskAccess(task, permission, current_user)
    return checker
