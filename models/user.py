from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, Literal, Union, Annotated


class SchoolRole(BaseModel):
    """School accounts carry a structured role; heads also name their unit."""
    name: Literal['admin', 'sub-admin', 'department-head', 'faculty-head']
    department: Optional[str] = None


class AdminRecipient(BaseModel):
    kind: Literal['Admin'] = 'Admin'
    id: str
    name: Optional[str] = None

    @property
    def scope_role(self) -> Optional[str]:
        return None

    @property
    def parent_id(self) -> Optional[str]:
        return None


class StudentRecipient(BaseModel):
    kind: Literal['Student'] = 'Student'
    id: str
    name: Optional[str] = None
    school_id: Optional[str] = None

    @property
    def scope_role(self) -> Optional[str]:
        return None

    @property
    def parent_id(self) -> Optional[str]:
        return self.school_id


class CompanyAccountRecipient(BaseModel):
    kind: Literal['CompanyAccount'] = 'CompanyAccount'
    id: str
    name: Optional[str] = None
    company_id: str
    role: Literal['admin', 'sub-admin', 'mentor']

    @property
    def scope_role(self) -> Optional[str]:
        return self.role

    @property
    def parent_id(self) -> Optional[str]:
        return self.company_id


class SchoolAccountRecipient(BaseModel):
    kind: Literal['SchoolAccount'] = 'SchoolAccount'
    id: str
    name: Optional[str] = None
    school_id: str
    role: SchoolRole

    @property
    def scope_role(self) -> Optional[str]:
        return self.role.name

    @property
    def parent_id(self) -> Optional[str]:
        return self.school_id


# Tagged union: role shape depends on the account kind
Recipient = Annotated[
    Union[AdminRecipient, StudentRecipient, CompanyAccountRecipient, SchoolAccountRecipient],
    Field(discriminator="kind"),
]


class CurrentUser(BaseModel):
    """The authenticated (user_id, user_kind, role) triple every core operation accepts."""
    id: str
    kind: Literal['Admin', 'CompanyAccount', 'SchoolAccount', 'Student']
    role: Optional[str] = None
    name: Optional[str] = None
    parent_id: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @classmethod
    def from_recipient(cls, recipient: Recipient) -> "CurrentUser":
        return cls(
            id=recipient.id,
            kind=recipient.kind,
            role=recipient.scope_role,
            name=recipient.name,
            parent_id=recipient.parent_id,
        )
