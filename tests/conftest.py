import pytest
from httpx import AsyncClient, ASGITransport
from mongomock_motor import AsyncMongoMockClient
import os
from datetime import timedelta

# Set up test environment variables before anything else
os.environ["ENV"] = "testing"
os.environ["SECRET_KEY"] = "test_secret_key_12345"

from config import config
config.ENV = "testing"

from main import app
from database import NOTIFICATIONS, ADMINS, STUDENTS, COMPANIES, SCHOOLS, PROJECTS, TASKS
from models.task import TaskModel
from models.user import CurrentUser
from routes.deps import create_access_token, get_db, get_notification_stream
from utils.directory import RecipientDirectory, TaskDirectory
from utils.notification_store import NotificationStore
from utils.notification_stream import NotificationStream
from utils.notifications import NotificationService
from utils.task_permissions import TaskAccessControl


# Ids of the seeded world, shared by every test module through the `world` fixture
WORLD = {
    "admin": "admin-1",
    "company": "company-1",
    "company_admin": "company-admin-1",
    "mentor": "mentor-1",          # owns project-1 and its tasks
    "other_mentor": "mentor-2",    # same company, not the owner
    "outsider_mentor": "outsider-mentor",
    "school": "school-1",
    "school_admins": ["school-admin-1", "school-admin-2"],
    "faculty": "faculty-1",
    "assignee": "student-assignee",
    "member": "student-member",
    "outsider": "student-outsider",
    "project": "project-1",
    "project_title": "Campus App",
    "task": "task-1",
    "task_name": "Build login",
}


async def seed_world(db):
    await db[ADMINS].insert_one({"id": WORLD["admin"], "name": "Root Admin"})
    await db[COMPANIES].insert_many([
        {
            "id": WORLD["company"],
            "name": "Acme",
            "accounts": [
                {"id": WORLD["company_admin"], "name": "Alice Admin", "role": "admin"},
                {"id": WORLD["mentor"], "name": "Mona Mentor", "role": "mentor"},
                {"id": WORLD["other_mentor"], "name": "Milo Mentor", "role": "mentor"},
            ],
        },
        {
            "id": "company-2",
            "name": "Globex",
            "accounts": [{"id": WORLD["outsider_mentor"], "name": "Oscar", "role": "mentor"}],
        },
    ])
    await db[SCHOOLS].insert_one({
        "id": WORLD["school"],
        "name": "Tech University",
        "accounts": [
            {"id": WORLD["school_admins"][0], "name": "Sam Admin", "role": {"name": "admin"}},
            {"id": WORLD["school_admins"][1], "name": "Sue Admin", "role": {"name": "admin"}},
            {"id": WORLD["faculty"], "name": "Fay Head", "role": {"name": "faculty-head", "department": "IT"}},
        ],
    })
    await db[STUDENTS].insert_many([
        {"id": WORLD["assignee"], "name": "Ann", "school_id": WORLD["school"]},
        {"id": WORLD["member"], "name": "Sid", "school_id": WORLD["school"]},
        {"id": WORLD["outsider"], "name": "Xena", "school_id": WORLD["school"]},
    ])
    await db[PROJECTS].insert_one({
        "id": WORLD["project"],
        "title": WORLD["project_title"],
        "company_id": WORLD["company"],
        "mentor_id": WORLD["mentor"],
        "selected_applicants": [
            {"student_id": WORLD["assignee"]},
            {"student_id": WORLD["member"]},
        ],
        "is_recruiting": True,
    })
    task = TaskModel(
        id=WORLD["task"],
        name=WORLD["task_name"],
        project_id=WORLD["project"],
        assigned_to=WORLD["assignee"],
    )
    await db[TASKS].insert_one(task.model_dump())


@pytest.fixture(scope="function")
def mock_db():
    """Fresh in-memory MongoDB per test."""
    return AsyncMongoMockClient()["interntrack_test"]

@pytest.fixture(scope="function")
async def world(mock_db):
    await seed_world(mock_db)
    return WORLD

@pytest.fixture(scope="function")
def stream():
    return NotificationStream()

@pytest.fixture(scope="function")
def directory(mock_db):
    return RecipientDirectory(mock_db)

@pytest.fixture(scope="function")
def store(mock_db):
    return NotificationStore(mock_db[NOTIFICATIONS])

@pytest.fixture(scope="function")
def service(store, directory, stream):
    return NotificationService(store, directory, stream)

@pytest.fixture(scope="function")
def task_directory(mock_db):
    return TaskDirectory(mock_db)

@pytest.fixture(scope="function")
def access(task_directory, directory, service):
    return TaskAccessControl(task_directory, directory, service)

@pytest.fixture(scope="function")
async def async_client(mock_db, stream):
    app.dependency_overrides[get_db] = lambda: mock_db
    app.dependency_overrides[get_notification_stream] = lambda: stream
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as test_client:
        yield test_client
    app.dependency_overrides.clear()

@pytest.fixture(scope="function")
def auth_headers():
    """Build bearer headers for any seeded account."""
    def make(user_id: str, kind: str) -> dict:
        token = create_access_token(
            data={"sub": user_id, "kind": kind},
            expires_delta=timedelta(minutes=60)
        )
        return {"Authorization": f"Bearer {token}"}
    return make

@pytest.fixture(scope="function")
def as_user(directory):
    """Resolve a seeded account to the CurrentUser the API would see."""
    async def resolve(user_id: str, kind: str) -> CurrentUser:
        return CurrentUser.from_recipient(await directory.resolve_recipient(user_id, kind))
    return resolve
