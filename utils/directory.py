"""
Directory adapters the notification and sharing engines read from.

RecipientDirectory resolves an (id, kind) pair to a typed Recipient. Company and
school accounts are embedded in their parent document, so their role and parent
id come along with the lookup. TaskDirectory loads tasks/projects and persists a
task's sharing state.
"""

from typing import List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from constants import RecipientKinds, SchoolRoles
from database import ADMINS, STUDENTS, COMPANIES, SCHOOLS, TASKS, PROJECTS
from exceptions import TaskNotFoundError, ProjectNotFoundError
from logging_config import get_logger
from models.project import ProjectModel
from models.task import TaskModel, TaskSharing
from models.user import (
    AdminRecipient,
    StudentRecipient,
    CompanyAccountRecipient,
    SchoolAccountRecipient,
    Recipient,
)

logger = get_logger("directory")

NOT_DELETED = {"$ne": True}


def _find_account(parent: dict, account_id: str) -> Optional[dict]:
    for account in parent.get("accounts", []):
        if account.get("id") == account_id and not account.get("is_deleted"):
            return account
    return None


def _company_account(company: dict, account: dict) -> CompanyAccountRecipient:
    return CompanyAccountRecipient(
        id=account["id"],
        name=account.get("name"),
        company_id=company["id"],
        role=account["role"],
    )


def _school_account(school: dict, account: dict) -> SchoolAccountRecipient:
    return SchoolAccountRecipient(
        id=account["id"],
        name=account.get("name"),
        school_id=school["id"],
        role=account["role"],
    )


class RecipientDirectory:
    def __init__(self, db: AsyncIOMotorDatabase):
        self._db = db

    async def resolve_recipient(self, recipient_id: str, kind: str) -> Optional[Recipient]:
        """Return the typed recipient, or None when the pair does not resolve."""
        if kind == RecipientKinds.ADMIN:
            admin = await self._db[ADMINS].find_one({"id": recipient_id, "is_deleted": NOT_DELETED})
            return AdminRecipient(id=admin["id"], name=admin.get("name")) if admin else None

        if kind == RecipientKinds.STUDENT:
            student = await self._db[STUDENTS].find_one({"id": recipient_id, "is_deleted": NOT_DELETED})
            if not student:
                return None
            return StudentRecipient(id=student["id"], name=student.get("name"), school_id=student.get("school_id"))

        if kind == RecipientKinds.COMPANY_ACCOUNT:
            company = await self._db[COMPANIES].find_one({"accounts.id": recipient_id})
            account = _find_account(company, recipient_id) if company else None
            return _company_account(company, account) if account else None

        if kind == RecipientKinds.SCHOOL_ACCOUNT:
            school = await self._db[SCHOOLS].find_one({"accounts.id": recipient_id})
            account = _find_account(school, recipient_id) if school else None
            return _school_account(school, account) if account else None

        logger.warning(f"Unknown recipient kind requested", extra={"data": {"kind": kind, "recipient": recipient_id}})
        return None

    async def school_admins(self, school_id: str) -> List[SchoolAccountRecipient]:
        """Every active admin account of a school; a school has no single admin field."""
        school = await self._db[SCHOOLS].find_one({"id": school_id})
        if not school:
            return []
        return [
            _school_account(school, account)
            for account in school.get("accounts", [])
            if not account.get("is_deleted") and account.get("role", {}).get("name") == SchoolRoles.ADMIN
        ]

    async def company_accounts(self, company_id: str) -> List[CompanyAccountRecipient]:
        company = await self._db[COMPANIES].find_one({"id": company_id})
        if not company:
            return []
        return [
            _company_account(company, account)
            for account in company.get("accounts", [])
            if not account.get("is_deleted")
        ]

    async def all_broadcast_recipients(self) -> list:
        """All students and all company accounts."""
        recipients = []
        async for student in self._db[STUDENTS].find({"is_deleted": NOT_DELETED}):
            recipients.append(StudentRecipient(id=student["id"], name=student.get("name"), school_id=student.get("school_id")))
        async for company in self._db[COMPANIES].find({}):
            recipients.extend(
                _company_account(company, account)
                for account in company.get("accounts", [])
                if not account.get("is_deleted")
            )
        return recipients


class TaskDirectory:
    def __init__(self, db: AsyncIOMotorDatabase):
        self._db = db

    async def get_task(self, task_id: str) -> TaskModel:
        task = await self._db[TASKS].find_one({"id": task_id, "is_deleted": NOT_DELETED})
        if not task:
            raise TaskNotFoundError(task_id)
        return TaskModel(**task)

    async def get_project(self, project_id: str) -> ProjectModel:
        project = await self._db[PROJECTS].find_one({"id": project_id})
        if not project:
            raise ProjectNotFoundError(project_id)
        return ProjectModel(**project)

    async def save_sharing(self, task_id: str, sharing: TaskSharing) -> None:
        result = await self._db[TASKS].update_one(
            {"id": task_id},
            {"$set": {"sharing": sharing.model_dump()}}
        )
        if result.matched_count == 0:
            raise TaskNotFoundError(task_id)
