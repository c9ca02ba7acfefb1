# API endpoints
from . import auth, faculty, student, health

__all__ = ["auth", "faculty", "student", "health"]
