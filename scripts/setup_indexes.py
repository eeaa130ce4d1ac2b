import sys
import os
import asyncio
from pymongo import ASCENDING

# Add parent directory to path to import database
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from database import db, NOTIFICATIONS, TASKS, PROJECTS, STUDENTS, ADMINS, COMPANIES, SCHOOLS
from logging_config import get_logger
from utils.notification_store import NotificationStore

logger = get_logger("setup_indexes")

async def create_indexes():
    print("🚀 Starting Index Creation...")

    # --- Notifications ---
    print("\n📦 Notifications Collection:")
    # List, unread badge and the open-group uniqueness guard
    await NotificationStore(db[NOTIFICATIONS]).ensure_indexes()
    print("✅ Created notification indexes (incl. open_group_unique)")

    # --- Tasks & Projects ---
    print("\n📦 Tasks / Projects Collections:")
    await db[TASKS].create_index([("id", ASCENDING)], unique=True)
    await db[TASKS].create_index([("project_id", ASCENDING)])
    await db[PROJECTS].create_index([("id", ASCENDING)], unique=True)
    print("✅ Created index: tasks(id UNIQUE), tasks(project_id), projects(id UNIQUE)")

    # --- Directory ---
    print("\n📦 Directory Collections:")
    # Recipient resolution by id; accounts live embedded in their company/school
    await db[STUDENTS].create_index([("id", ASCENDING)], unique=True)
    await db[ADMINS].create_index([("id", ASCENDING)], unique=True)
    await db[COMPANIES].create_index([("accounts.id", ASCENDING)])
    await db[SCHOOLS].create_index([("accounts.id", ASCENDING)])
    print("✅ Created index: students(id), admins(id), companies(accounts.id), schools(accounts.id)")

    logger.info("Indexes created")
    print("\n✨ All indexes created successfully!")

if __name__ == "__main__":
    # Ensure event loop for async driver
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    loop.run_until_complete(create_indexes())
