from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, Literal, List
from datetime import datetime, timezone

AccessType = Literal['view', 'edit']


class TaskShareGrant(BaseModel):
    """Explicit per-user access to a private task."""
    user_id: str
    user_kind: Literal['Student', 'CompanyAccount']
    access_type: AccessType = 'view'
    shared_by: Optional[str] = None
    shared_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(extra="ignore")


class TaskSharing(BaseModel):
    is_public: bool = False
    default_access_type: AccessType = 'view'  # Applied to every project member while public
    # Kept while public; they take effect again once the task is private
    shared_with: List[TaskShareGrant] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore")

    def grant_for(self, user_id: str, user_kind: str) -> Optional[TaskShareGrant]:
        for grant in self.shared_with:
            if grant.user_id == user_id and grant.user_kind == user_kind:
                return grant
        return None


class TaskModel(BaseModel):
    id: str
    name: str
    project_id: str
    assigned_to: Optional[str] = None  # student id

    status: Literal['Assigned', 'Submitted', 'Evaluated', 'Overdue', 'Completed'] = 'Assigned'
    deadline: Optional[datetime] = None
    rating: Optional[int] = Field(default=None, ge=1, le=10)

    sharing: TaskSharing = Field(default_factory=TaskSharing)
    is_deleted: bool = False

    model_config = ConfigDict(
        populate_by_name=True,
        use_enum_values=True,
        extra="ignore"
    )


class PermissionResult(BaseModel):
    can_edit_status: bool = False
    can_add_files: bool = False
    can_remove_files: bool = False
    can_remove_own_files: bool = False
    can_add_comments: bool = False
    can_edit_comments: bool = False
    can_manage_sharing: bool = False

    model_config = ConfigDict(frozen=True)


# Owning mentor
FULL_PERMISSION = PermissionResult(
    can_edit_status=True,
    can_add_files=True,
    can_remove_files=True,
    can_remove_own_files=True,
    can_add_comments=True,
    can_edit_comments=True,
    can_manage_sharing=True,
)

EDIT_PERMISSION = PermissionResult(
    can_add_files=True,
    can_remove_own_files=True,
    can_add_comments=True,
)

VIEW_PERMISSION = PermissionResult()

ACCESS_PERMISSIONS = {
    'view': VIEW_PERMISSION,
    'edit': EDIT_PERMISSION,
}


class ShareRequest(BaseModel):
    user_id: str
    user_kind: Literal['Student', 'CompanyAccount']
    access_type: AccessType = 'view'


class ShareSettingsRequest(BaseModel):
    is_public: bool
    default_access_type: Optional[AccessType] = None
