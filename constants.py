# Global Constants

class RecipientKinds:
    ADMIN = "Admin"
    COMPANY_ACCOUNT = "CompanyAccount"
    SCHOOL_ACCOUNT = "SchoolAccount"
    STUDENT = "Student"

    ALL = (ADMIN, COMPANY_ACCOUNT, SCHOOL_ACCOUNT, STUDENT)
    # Kinds sharing one id space per parent; delivery is filtered by role
    ROLE_SCOPED = (COMPANY_ACCOUNT, SCHOOL_ACCOUNT)


class CompanyRoles:
    ADMIN = "admin"
    SUB_ADMIN = "sub-admin"
    MENTOR = "mentor"


class SchoolRoles:
    ADMIN = "admin"
    SUB_ADMIN = "sub-admin"
    DEPARTMENT_HEAD = "department-head"
    FACULTY_HEAD = "faculty-head"


class NotificationTypes:
    TASK = "task"
    PROJECT = "project"
    SYSTEM = "system"
    ACCOUNT = "account"
    SURVEY = "survey"


class AccessTypes:
    VIEW = "view"
    EDIT = "edit"


class TaskActions:
    VIEW = "view"
    EDIT = "edit"
    ADMIN = "admin"


class TaskStatus:
    ASSIGNED = "Assigned"
    SUBMITTED = "Submitted"
    EVALUATED = "Evaluated"
    OVERDUE = "Overdue"
    COMPLETED = "Completed"
