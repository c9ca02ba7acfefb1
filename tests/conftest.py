"""
StudyShala - Test Configuration and Fixtures
"""
import os
from typing import AsyncGenerator, Dict, List, Optional

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from faker import Faker

# Set testing environment
os.environ['ENVIRONMENT'] = 'testing'
os.environ['DATABASE_URL'] = 'sqlite+aiosqlite:///./test.db'
os.environ['JWT_SECRET_KEY'] = 'test-jwt-secret-key-for-testing'
os.environ['ADMIN_EMAILS_STR'] = 'admin@studyshala.test,boss@studyshala.test'
os.environ['RATE_LIMIT_ENABLED'] = 'false'
os.environ['DRIVE_UPLOADS_ENABLED'] = 'false'
os.environ['LOG_FILE'] = ''
os.environ['FRONTEND_URL'] = 'http://frontend.test'
os.environ['GOOGLE_CLIENT_ID'] = ''
os.environ['GOOGLE_CLIENT_SECRET'] = ''

from studyshala.main import app
from studyshala.core.database import Base, get_db
from studyshala.core.exceptions import DriveServiceError
from studyshala.core.security import create_user_token
from studyshala.models.material import Material, MaterialFile, MaterialPermission
from studyshala.models.user import User, UserRole
from studyshala.modules.oauth.google_provider import GoogleOAuthProvider, get_google_oauth
from studyshala.modules.oauth.state_store import InMemoryOAuthStateStore
from studyshala.services.drive_service import get_drive_service

fake = Faker()

ADMIN_EMAIL = 'admin@studyshala.test'


# ==================== Fakes ====================

class FakeDownload:
    """Stands in for DriveDownload"""

    def __init__(self, content: bytes, media_type: str = 'application/octet-stream'):
        self.content = content
        self.media_type = media_type
        self.size = len(content)
        self.closed = False

    async def iter_bytes(self):
        yield self.content
        self.closed = True

    async def aclose(self):
        self.closed = True


class FakeDriveService:
    """In-memory Drive with switchable failures"""

    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self.fail_uploads = False
        self.fail_folders = False
        self.fail_deletes = False
        self.folders: Dict[str, str] = {}
        self.files: Dict[str, bytes] = {}
        self.permissions: Dict[str, MaterialPermission] = {}
        self.deleted: List[str] = []
        self._counter = 0

    def _next_id(self, prefix: str) -> str:
        self._counter += 1
        return f"{prefix}-{self._counter}"

    async def create_folder(self, name: str) -> Dict[str, str]:
        if self.fail_folders:
            raise DriveServiceError("Drive folder creation failed", operation="create_folder")
        folder_id = self._next_id('folder')
        self.folders[folder_id] = name
        return {"id": folder_id, "url": f"https://drive.google.com/drive/folders/{folder_id}"}

    async def upload_file(self, name: str, content: bytes, mime_type: str,
                          parent_id: Optional[str] = None) -> Dict[str, str]:
        if self.fail_uploads:
            raise DriveServiceError("Drive upload failed", operation="upload", upstream_status=500)
        file_id = self._next_id('file')
        self.files[file_id] = content
        return {"id": file_id, "url": f"https://drive.google.com/file/d/{file_id}/view"}

    async def set_permission(self, file_id: str, permission: MaterialPermission) -> None:
        self.permissions[file_id] = permission

    async def delete_file(self, file_id: str) -> None:
        if self.fail_deletes:
            raise DriveServiceError("Drive delete failed", operation="delete", upstream_status=500)
        self.deleted.append(file_id)
        self.files.pop(file_id, None)
        self.folders.pop(file_id, None)

    async def open_download(self, file_id: str) -> FakeDownload:
        if file_id not in self.files:
            raise DriveServiceError("Drive download failed: 404", operation="download", upstream_status=404)
        return FakeDownload(self.files[file_id])


class FakeGoogleProvider(GoogleOAuthProvider):
    """Google provider whose code exchange is answered from a dict"""

    def __init__(self):
        super().__init__(
            client_id='test-client-id',
            client_secret='test-client-secret',
            redirect_uri='http://test/api/v1/auth/google/callback',
        )
        self.profiles: Dict[str, dict] = {}

    def add_profile(self, code: str, email: str, google_id: str = None, full_name: str = None) -> dict:
        profile = {
            "google_id": google_id or str(fake.unique.random_number(digits=12)),
            "email": email,
            "email_verified": True,
            "full_name": full_name or fake.name(),
            "avatar_url": None,
        }
        self.profiles[code] = profile
        return profile

    async def authenticate(self, code: str):
        return self.profiles.get(code)


# ==================== Database ====================

@pytest.fixture
async def db_engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path}/test.db", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database session for each test"""
    session_factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session


# ==================== Collaborators ====================

@pytest.fixture
def drive() -> FakeDriveService:
    return FakeDriveService()


@pytest.fixture
def google() -> FakeGoogleProvider:
    return FakeGoogleProvider()


@pytest.fixture
def state_store() -> InMemoryOAuthStateStore:
    return InMemoryOAuthStateStore(ttl_seconds=600, sweep_interval_seconds=60)


@pytest.fixture
async def client(db_session: AsyncSession, drive, google, state_store) -> AsyncGenerator[AsyncClient, None]:
    """Create test client with database, Drive and Google overrides"""
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_drive_service] = lambda: drive
    app.dependency_overrides[get_google_oauth] = lambda: google
    app.state.oauth_state_store = state_store

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url='http://test') as ac:
        yield ac

    app.dependency_overrides.clear()


# ==================== Users ====================

async def make_user(db: AsyncSession, role: UserRole, email: str = None, **kwargs) -> User:
    user = User(
        google_id=str(fake.unique.random_number(digits=12)),
        email=email or fake.unique.email(),
        full_name=fake.name(),
        role=role,
        is_active=True,
        **kwargs
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


def auth_header(user: User) -> dict:
    return {'Authorization': f'Bearer {create_user_token(user)}'}


@pytest.fixture
async def student_user(db_session: AsyncSession) -> User:
    return await make_user(db_session, UserRole.STUDENT, department='CSE', semester=3)


@pytest.fixture
async def faculty_user(db_session: AsyncSession) -> User:
    return await make_user(db_session, UserRole.FACULTY, department='CSE')


@pytest.fixture
async def admin_user(db_session: AsyncSession) -> User:
    return await make_user(db_session, UserRole.ADMIN, email=ADMIN_EMAIL)


@pytest.fixture
def student_headers(student_user: User) -> dict:
    return auth_header(student_user)


@pytest.fixture
def faculty_headers(faculty_user: User) -> dict:
    return auth_header(faculty_user)


@pytest.fixture
def admin_headers(admin_user: User) -> dict:
    return auth_header(admin_user)


# ==================== Materials ====================

async def make_material(db: AsyncSession, faculty: User, access_code: str = None, **kwargs) -> Material:
    fields = dict(
        faculty_id=faculty.id,
        faculty_name=faculty.full_name,
        subject_name='Algorithms',
        department='CSE',
        semester=3,
        permission=MaterialPermission.VIEW,
        access_code=access_code or fake.unique.hexify(text='^^^^^^^^', upper=True),
    )
    fields.update(kwargs)
    material = Material(**fields)
    db.add(material)
    await db.commit()
    await db.refresh(material)
    return material


@pytest.fixture
async def material(db_session: AsyncSession, faculty_user: User, drive: FakeDriveService) -> Material:
    """Active material with one Drive-backed and one metadata-only file"""
    drive.files['file-seeded'] = b'%PDF-1.4 lecture notes'
    material = await make_material(db_session, faculty_user, access_code='ABCD1234')
    material.files.append(MaterialFile(
        name='seed-notes.pdf', original_name='notes.pdf', mime_type='application/pdf',
        size=22, drive_file_id='file-seeded', uploaded_by=faculty_user.id,
    ))
    material.files.append(MaterialFile(
        name='seed-syllabus.txt', original_name='syllabus.txt', mime_type='text/plain',
        size=10, drive_file_id=None, uploaded_by=faculty_user.id,
    ))
    await db_session.commit()
    await db_session.refresh(material)
    return material
