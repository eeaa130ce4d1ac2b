from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List
from datetime import datetime


class SelectedApplicant(BaseModel):
    student_id: str
    applied_date: Optional[datetime] = None

    model_config = ConfigDict(extra="ignore")


class ProjectModel(BaseModel):
    """Read-only view of a project as the notification and sharing engines need it."""
    id: str
    title: str
    company_id: str
    mentor_id: str  # Company account that assigns and owns the project's tasks
    selected_applicants: List[SelectedApplicant] = Field(default_factory=list)
    is_recruiting: bool = False

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def has_member(self, student_id: str) -> bool:
        return any(a.student_id == student_id for a in self.selected_applicants)
