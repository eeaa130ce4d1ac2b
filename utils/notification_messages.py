"""
Notification message catalog.

Every notification text the backend produces is rendered here from a dotted
event key (``task.assigned``, ``project.openRecruitment``, ...) and positional
parameters. Rendering is pure: no I/O, no state. Names are wrapped in ``**``,
the only emphasis marker the clients render.
"""

import html
from typing import NamedTuple, Tuple, Any, Callable, Dict

from exceptions import TemplateNotFoundError


def rating_band(rating: float) -> str:
    """Wording band for task feedback: >=9 excellent, >=7 great, >=5 fair, else encouragement."""
    if rating >= 9:
        return "excellent"
    if rating >= 7:
        return "great"
    if rating >= 5:
        return "fair"
    return "encouragement"


_RATED_WORDING = {
    "excellent": lambda task, rating: f'Excellent work! Your task **{task}** was rated {rating}/10.',
    "great": lambda task, rating: f'Great job! Your task **{task}** was rated {rating}/10.',
    "fair": lambda task, rating: f'Your task **{task}** was rated {rating}/10. A fair result with room to improve.',
    "encouragement": lambda task, rating: f"Your task **{task}** was rated {rating}/10. Don't give up, review the feedback and keep going!",
}


def _rated(task_name, rating):
    return _RATED_WORDING[rating_band(rating)](task_name, rating)


NOTIFICATION_MESSAGES: Dict[str, Dict[str, Callable[..., str]]] = {
    "account": {
        "newRegistration": lambda student: f"Student **{student}** registered a new account for your school.",
        "groupedRegistration": lambda student, others: f"Student **{student}** and {others} others registered new accounts for your school.",
        "newDeviceLogin": lambda: "A login from a new device was detected. If this wasn't you, change your password immediately.",
        "passwordChanged": lambda: "Your password was changed successfully.",
    },
    "project": {
        "openRecruitment": lambda project: f'Project **{project}** is now open for recruitment.',
        "closeRecruitment": lambda project: f'Project **{project}** has closed recruitment.',
        "newApplicant": lambda project: f'A new student applied to project **{project}**.',
        "applicationSubmitted": lambda project: f'Your application to project **{project}** was submitted.',
        "applicationAccepted": lambda project: f'You have been accepted into project **{project}**.',
        "applicationExpired": lambda project: f'Your application to project **{project}** has expired.',
        "applicationRejected": lambda project: f'Your application to project **{project}** was rejected.',
        "applicationRejectedAfterClose": lambda project: f'Project **{project}** has finished recruiting. Unfortunately your application was not selected.',
        "applicationRemoved": lambda project, reason: f'Your application to project **{project}** was removed. Reason: {reason}.',
        "studentRemoved": lambda project: f'You have been removed from project **{project}**.',
        "studentRemovedForOtherReason": lambda project, reason: f'You have been removed from project **{project}**. Reason: {reason}.',
        "mentorReplaced": lambda project: f'Another mentor has replaced you on project **{project}**.',
        "mentorAssigned": lambda project: f'You have been assigned as mentor of project **{project}**.',
    },
    "task": {
        "assigned": lambda task, project: f'You have a new task **{task}** in project **{project}**.',
        "newTaskForMentor": lambda task, project: f'Task **{task}** was created in project **{project}**.',
        "updated": lambda task: f'Task **{task}** has been updated.',
        "updatedForMentor": lambda task, project: f'Task **{task}** in project **{project}** has been updated.',
        "overdue": lambda task: f'Task **{task}** is overdue.',
        "rated": _rated,
        "submitted": lambda task: f'Task **{task}** has been submitted and is waiting for your review.',
        "evaluated": lambda task: f'Your submission for task **{task}** has been evaluated.',
        "sharedWithYou": lambda task, access: f'Task **{task}** was shared with you ({access} access).',
        "shareRemoved": lambda task: f'Your access to task **{task}** was removed.',
        "madePublic": lambda task, access: f'Task **{task}** is now visible to all project members ({access} access).',
    },
    "survey": {
        "newMandatorySurveyForMentor": lambda project, student: f'Please complete the mandatory survey about **{student}** in project **{project}**.',
        "newMandatorySurveyForStudent": lambda project: f'Please complete the mandatory survey for project **{project}**.',
        "surveyCompleted": lambda project: f'A survey for project **{project}** has been completed.',
        "mentorSurveyCompleted": lambda project, student: f'The mentor completed the survey about **{student}** in project **{project}**.',
    },
    "system": {
        "announcement": lambda text: text,
    },
}

# Single-event template -> template used once the notification groups several events
GROUPED_TEMPLATES = {
    "account.newRegistration": "account.groupedRegistration",
}


class TemplateRef(NamedTuple):
    """Deferred composition: resolved by the fan-out engine before anything is written."""
    key: str
    params: Tuple[Any, ...] = ()


def message(key: str, *params) -> TemplateRef:
    return TemplateRef(key, tuple(params))


def get_template(key: str) -> Callable[..., str]:
    section, _, name = key.partition(".")
    try:
        return NOTIFICATION_MESSAGES[section][name]
    except KeyError:
        raise TemplateNotFoundError(key) from None


def compose(key: str, *params) -> str:
    """Render the template registered under ``key``. Unknown keys raise TemplateNotFoundError."""
    return get_template(key)(*params)


def compose_grouped(key: str, actor_name: str, count: int) -> str:
    """Render a grouping template: the single variant for one event, the grouped one after."""
    if count <= 1:
        return compose(key, actor_name)
    grouped_key = GROUPED_TEMPLATES.get(key)
    if grouped_key is None:
        raise TemplateNotFoundError(f"{key} (grouped)")
    return compose(grouped_key, actor_name, count - 1)


def escape_content(text: str) -> str:
    """Escape markup; the ``**`` emphasis marker passes through untouched."""
    return html.escape(text, quote=False)
