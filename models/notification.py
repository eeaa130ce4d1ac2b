from pydantic import BaseModel, Field, ConfigDict, field_validator
from typing import Optional, Literal, List, Union
from datetime import datetime, timezone
import uuid

from config import config
from utils.notification_messages import TemplateRef, escape_content

RecipientKind = Literal['Admin', 'CompanyAccount', 'SchoolAccount', 'Student']
NotificationType = Literal['task', 'project', 'system', 'account', 'survey']


class NotificationModel(BaseModel):
    """In-app notification addressed to one account."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))

    # Routing
    recipient: str
    recipient_kind: RecipientKind
    recipient_role: Optional[str] = None  # Only for CompanyAccount / SchoolAccount

    type: NotificationType

    # Rendered, HTML-escaped text
    content: str = Field(max_length=config.NOTIFICATION_CONTENT_MAX_LENGTH)

    # Reference
    related_id: Optional[str] = None  # Task/project/report the notification concerns
    related_data: dict = Field(default_factory=dict)  # Grouping payload: count, latest_actor_id, ...

    # State
    is_read: bool = False
    read_at: Optional[datetime] = None
    is_deleted: bool = False
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class NotificationRequest(BaseModel):
    """Unsaved input to the fan-out engine."""
    recipient: str
    recipient_kind: str
    type: NotificationType
    content: Union[str, TemplateRef]
    related_id: Optional[str] = None
    recipient_role: Optional[str] = None
    related_data: Optional[dict] = None


class BatchFailure(BaseModel):
    index: int
    recipient: Optional[str] = None  # None when the item itself was malformed
    recipient_kind: Optional[str] = None
    code: str
    error: str


class BatchResult(BaseModel):
    succeeded: List[NotificationModel] = Field(default_factory=list)
    failed: List[BatchFailure] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


class NotificationPage(BaseModel):
    notifications: List[NotificationModel]
    current_page: int
    total_pages: int
    total: int


class BroadcastRequest(BaseModel):
    content: str = Field(min_length=1)
    type: NotificationType = 'system'

    @field_validator("content")
    @classmethod
    def fits_once_escaped(cls, v: str) -> str:
        # Stored content is the escaped text, so the limit applies after escaping
        if len(escape_content(v)) > config.NOTIFICATION_CONTENT_MAX_LENGTH:
            raise ValueError(
                f"content exceeds {config.NOTIFICATION_CONTENT_MAX_LENGTH} characters once escaped"
            )
        return v
