"""
Database Seed Data Module

Sample users and folders for local development.
Run with: python -m studyshala.db.seed_data [clear]
"""
import asyncio
import random
import sys
from datetime import datetime
from typing import Dict, List

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from studyshala.core.database import AsyncSessionLocal, init_db
from studyshala.models.audit_log import AuditLog
from studyshala.models.material import (
    AccessHistory,
    Material,
    MaterialFile,
    MaterialPermission,
    SavedMaterial,
)
from studyshala.models.user import User, UserRole
from studyshala.services.access_code import generate_access_code


# ==================== Sample Data Constants ====================

SAMPLE_ADMIN = {
    "google_id": "admin-test-001",
    "email": "admin@studyshala.edu",
    "full_name": "Admin User",
    "department": "Administration",
}

SAMPLE_FACULTY = [
    {"google_id": "faculty-test-001", "email": "john.smith@studyshala.edu", "full_name": "Dr. John Smith", "department": "CSE"},
    {"google_id": "faculty-test-002", "email": "sarah.johnson@studyshala.edu", "full_name": "Dr. Sarah Johnson", "department": "ECE"},
    {"google_id": "faculty-test-003", "email": "michael.brown@studyshala.edu", "full_name": "Prof. Michael Brown", "department": "CSE"},
]

# (faculty index, subject, department, semester, legacy code, permission, access count)
SAMPLE_MATERIALS = [
    (0, "Data Structures and Algorithms", "CSE", 3, "CSE101", MaterialPermission.VIEW, 45),
    (0, "Database Management Systems", "CSE", 4, "CSE101", MaterialPermission.COMMENT, 38),
    (1, "Digital Signal Processing", "ECE", 5, "ECE101", MaterialPermission.VIEW, 52),
    (1, "Communication Systems", "ECE", 6, "ECE101", MaterialPermission.EDIT, 31),
    (2, "Machine Learning", "CSE", 7, "CSE101", MaterialPermission.VIEW, 67),
    (2, "Operating Systems", "CSE", 5, "CSE101", MaterialPermission.COMMENT, 42),
]

SAMPLE_FILES = [
    ("Lecture Notes.pdf", "application/pdf", 1_245_184),
    ("Assignment 1.docx", "application/vnd.openxmlformats-officedocument.wordprocessingml.document", 48_213),
    ("Slides - Unit 1.pptx", "application/vnd.openxmlformats-officedocument.presentationml.presentation", 3_211_520),
]


# ==================== Seeders ====================

async def seed_users(db: AsyncSession) -> Dict[str, List[User]]:
    """Create one admin, three faculty and ten students"""
    now = datetime.utcnow()

    admin = User(role=UserRole.ADMIN, last_login=now, **SAMPLE_ADMIN)
    db.add(admin)

    faculty = []
    for data in SAMPLE_FACULTY:
        user = User(role=UserRole.FACULTY, last_login=now, **data)
        db.add(user)
        faculty.append(user)

    students = []
    for i in range(1, 11):
        user = User(
            google_id=f"student-test-{i:03d}",
            email=f"student{i}@studyshala.edu",
            full_name=f"Student {i}",
            role=UserRole.STUDENT,
            department="CSE" if i <= 5 else "ECE",
            semester=random.randint(1, 8),
            last_login=now,
        )
        db.add(user)
        students.append(user)

    await db.flush()
    print(f"Created {1 + len(faculty) + len(students)} users")
    return {"admin": [admin], "faculty": faculty, "students": students}


async def seed_materials(db: AsyncSession, faculty: List[User]) -> List[Material]:
    """Create sample folders with metadata-only files"""
    materials = []
    for index, (owner, subject, department, semester, legacy, permission, count) in enumerate(SAMPLE_MATERIALS, start=1):
        owner_user = faculty[owner]
        material = Material(
            faculty_id=owner_user.id,
            faculty_name=owner_user.full_name,
            subject_name=subject,
            department=department,
            semester=semester,
            permission=permission,
            access_code=await generate_access_code(db),
            legacy_code=legacy,
            drive_folder_id=f"sample-folder-{index}",
            drive_url=f"https://drive.google.com/drive/folders/sample-folder-{index}",
            access_count=count,
        )
        for name, mime_type, size in SAMPLE_FILES:
            material.files.append(MaterialFile(
                name=f"sample-{index}-{name}",
                original_name=name,
                mime_type=mime_type,
                size=size,
                uploaded_by=owner_user.id,
            ))
        db.add(material)
        # Flush so the next code generation sees this one
        await db.flush()
        materials.append(material)

    print(f"Created {len(materials)} folders")
    return materials


async def seed_all():
    """Seed all sample data"""
    print("=" * 50)
    print("Starting database seeding...")
    print("=" * 50)

    await init_db()

    async with AsyncSessionLocal() as db:
        try:
            users = await seed_users(db)
            materials = await seed_materials(db, users["faculty"])
            await db.commit()

            print("=" * 50)
            print("Database seeding completed successfully!")
            print(f"Admin:   {SAMPLE_ADMIN['email']} (add it to ADMIN_EMAILS_STR)")
            print(f"Faculty: {SAMPLE_FACULTY[0]['email']}")
            print("Student: student1@studyshala.edu")
            for material in materials:
                print(f"  {material.access_code}  {material.subject_name} ({material.department} S{material.semester})")
            print("=" * 50)

        except Exception as e:
            await db.rollback()
            print(f"Error seeding database: {e}")
            raise


async def clear_all():
    """Clear all data from database"""
    print("Clearing all data...")
    async with AsyncSessionLocal() as db:
        # Delete in reverse order of dependencies
        await db.execute(delete(AuditLog))
        await db.execute(delete(AccessHistory))
        await db.execute(delete(SavedMaterial))
        await db.execute(delete(MaterialFile))
        await db.execute(delete(Material))
        await db.execute(delete(User))
        await db.commit()
        print("All data cleared!")


def main():
    if len(sys.argv) > 1 and sys.argv[1] == "clear":
        asyncio.run(clear_all())
    else:
        asyncio.run(seed_all())


if __name__ == "__main__":
    main()
