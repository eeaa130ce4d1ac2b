"""
Domain events -> notifications.

The CRUD layer calls one of these after the domain write succeeds. Each picks the
recipients and the message template; the NotificationService does the rest.
"""

from typing import Iterable, List, Optional

from constants import CompanyRoles, NotificationTypes, RecipientKinds, TaskStatus
from exceptions import TaskNotRatedError
from logging_config import get_logger
from models.notification import BatchResult, NotificationModel, NotificationRequest
from models.project import ProjectModel
from models.task import TaskModel
from models.user import CurrentUser
from utils.directory import RecipientDirectory
from utils.notification_messages import message
from utils.notifications import NotificationService

logger = get_logger("notification_events")

TASK = NotificationTypes.TASK
PROJECT = NotificationTypes.PROJECT
ACCOUNT = NotificationTypes.ACCOUNT
SURVEY = NotificationTypes.SURVEY
STUDENT = RecipientKinds.STUDENT
COMPANY_ACCOUNT = RecipientKinds.COMPANY_ACCOUNT
SCHOOL_ACCOUNT = RecipientKinds.SCHOOL_ACCOUNT


def _to_mentor(project: ProjectModel, content, related_id: str, type: str = TASK) -> NotificationRequest:
    return NotificationRequest(
        recipient=project.mentor_id,
        recipient_kind=COMPANY_ACCOUNT,
        recipient_role=CompanyRoles.MENTOR,
        type=type,
        content=content,
        related_id=related_id,
    )


def _to_student(student_id: str, content, related_id: Optional[str], type: str = TASK, related_data: Optional[dict] = None) -> NotificationRequest:
    return NotificationRequest(
        recipient=student_id,
        recipient_kind=STUDENT,
        type=type,
        content=content,
        related_id=related_id,
        related_data=related_data,
    )


async def _send(service: NotificationService, request: NotificationRequest) -> NotificationModel:
    return await service.notify(
        request.recipient,
        request.recipient_kind,
        request.type,
        request.content,
        related_id=request.related_id,
        recipient_role=request.recipient_role,
        related_data=request.related_data,
    )


# --- Tasks ---

async def task_created(service: NotificationService, task: TaskModel, project: ProjectModel) -> BatchResult:
    return await service.notify_many([
        _to_student(task.assigned_to, message("task.assigned", task.name, project.title), task.id),
        _to_mentor(project, message("task.newTaskForMentor", task.name, project.title), task.id),
    ])


async def task_updated(service: NotificationService, task: TaskModel, project: ProjectModel, previous_status: Optional[str] = None) -> BatchResult:
    """Status or deadline change; also warns the student when the task just went overdue."""
    requests = [
        _to_student(task.assigned_to, message("task.updated", task.name), task.id),
        _to_mentor(project, message("task.updatedForMentor", task.name, project.title), task.id),
    ]
    if task.status == TaskStatus.OVERDUE and previous_status != TaskStatus.OVERDUE:
        requests.append(_to_student(task.assigned_to, message("task.overdue", task.name), task.id))
    return await service.notify_many(requests)


async def task_rated(service: NotificationService, task: TaskModel) -> NotificationModel:
    if task.rating is None:
        raise TaskNotRatedError(task.id)
    return await _send(service, _to_student(task.assigned_to, message("task.rated", task.name, task.rating), task.id))


async def task_submitted(service: NotificationService, task: TaskModel, project: ProjectModel) -> NotificationModel:
    return await _send(service, _to_mentor(project, message("task.submitted", task.name), task.id))


async def task_evaluated(service: NotificationService, task: TaskModel) -> NotificationModel:
    return await _send(service, _to_student(task.assigned_to, message("task.evaluated", task.name), task.id))


# --- Projects & applications ---

async def recruitment_toggled(service: NotificationService, project: ProjectModel) -> NotificationModel:
    key = "project.openRecruitment" if project.is_recruiting else "project.closeRecruitment"
    return await _send(service, _to_mentor(project, message(key, project.title), project.id, PROJECT))


async def applicant_applied(service: NotificationService, project: ProjectModel, student_id: str) -> BatchResult:
    return await service.notify_many([
        _to_mentor(project, message("project.newApplicant", project.title), project.id, PROJECT),
        _to_student(student_id, message("project.applicationSubmitted", project.title), project.id, PROJECT),
    ])


async def applicant_accepted(service: NotificationService, project: ProjectModel, student_id: str) -> NotificationModel:
    return await _send(service, _to_student(student_id, message("project.applicationAccepted", project.title), project.id, PROJECT))


async def applicant_removed(service: NotificationService, project: ProjectModel, student_id: str, reason: str = "rejected") -> NotificationModel:
    if reason == "expired":
        content = message("project.applicationExpired", project.title)
    elif reason == "rejected":
        content = message("project.applicationRejected", project.title)
    else:
        content = message("project.applicationRemoved", project.title, reason)
    return await _send(service, _to_student(student_id, content, project.id, PROJECT))


async def recruitment_closed(service: NotificationService, project: ProjectModel, applicant_ids: Iterable[str]) -> BatchResult:
    """Tell every applicant who was not selected that recruitment is over."""
    content = message("project.applicationRejectedAfterClose", project.title)
    return await service.notify_many([
        _to_student(student_id, content, project.id, PROJECT)
        for student_id in applicant_ids
        if not project.has_member(student_id)
    ])


async def mentor_replaced(service: NotificationService, project: ProjectModel, old_mentor_id: str) -> BatchResult:
    """``project.mentor_id`` is already the new mentor."""
    replaced = NotificationRequest(
        recipient=old_mentor_id,
        recipient_kind=COMPANY_ACCOUNT,
        recipient_role=CompanyRoles.MENTOR,
        type=PROJECT,
        content=message("project.mentorReplaced", project.title),
        related_id=project.id,
    )
    return await service.notify_many([
        _to_mentor(project, message("project.mentorAssigned", project.title), project.id, PROJECT),
        replaced,
    ])


async def student_removed(service: NotificationService, project: ProjectModel, student_id: str, reason: str = "removed") -> NotificationModel:
    if reason == "removed":
        content = message("project.studentRemoved", project.title)
    else:
        content = message("project.studentRemovedForOtherReason", project.title, reason)
    return await _send(service, _to_student(student_id, content, project.id, PROJECT))


# --- Surveys ---

async def survey_assigned_to_mentor(service: NotificationService, project: ProjectModel, student_name: str, report_id: str, survey_id: str) -> NotificationModel:
    request = _to_mentor(project, message("survey.newMandatorySurveyForMentor", project.title, student_name), report_id, SURVEY)
    request.related_data = {"weekly_report_id": report_id, "survey_id": survey_id}
    return await _send(service, request)


async def survey_assigned_to_student(service: NotificationService, project: ProjectModel, student_id: str, report_id: str, survey_id: str) -> NotificationModel:
    return await _send(service, _to_student(
        student_id,
        message("survey.newMandatorySurveyForStudent", project.title),
        report_id,
        SURVEY,
        {"weekly_report_id": report_id, "survey_id": survey_id},
    ))


async def survey_completed(
    service: NotificationService,
    project: ProjectModel,
    faculty_account_id: str,
    report_id: str,
    by_mentor_about: Optional[str] = None,
) -> NotificationModel:
    """Tell the supervising faculty account; ``by_mentor_about`` names the student when the mentor answered."""
    if by_mentor_about:
        content = message("survey.mentorSurveyCompleted", project.title, by_mentor_about)
    else:
        content = message("survey.surveyCompleted", project.title)
    return await service.notify(
        faculty_account_id,
        SCHOOL_ACCOUNT,
        SURVEY,
        content,
        related_id=report_id,
        related_data={"weekly_report_id": report_id},
    )


# --- Accounts ---

async def student_registered(service: NotificationService, directory: RecipientDirectory, school_id: str, student_id: str, student_name: str) -> List[NotificationModel]:
    """Grouped per school admin so a registration wave stays one row."""
    admins = await directory.school_admins(school_id)
    if not admins:
        logger.warning("School has no admin account to notify", extra={"data": {"school_id": school_id}})
    return [
        await service.notify_or_group(
            admin.id,
            SCHOOL_ACCOUNT,
            f"registrations:{school_id}",
            student_name,
            ACCOUNT,
            actor_id=student_id,
            related_data={"school_id": school_id},
        )
        for admin in admins
    ]


async def new_device_login(service: NotificationService, user: CurrentUser) -> NotificationModel:
    return await service.notify(user.id, user.kind, ACCOUNT, message("account.newDeviceLogin"))


async def password_changed(service: NotificationService, user: CurrentUser) -> NotificationModel:
    return await service.notify(user.id, user.kind, ACCOUNT, message("account.passwordChanged"))


async def broadcast(service: NotificationService, directory: RecipientDirectory, content: str, type: str = NotificationTypes.SYSTEM) -> BatchResult:
    """Admin announcement to every student and company account."""
    recipients = await directory.all_broadcast_recipients()
    return await service.notify_many([
        NotificationRequest(recipient=r.id, recipient_kind=r.kind, type=type, content=message("system.announcement", content))
        for r in recipients
    ])
