"""
Access code generation.

Codes are random upper-case hex strings, unique among active materials
(checked against both the current and the legacy code column). The search
is bounded: ACCESS_CODE_MAX_ATTEMPTS draws at the short width, then the same
number at the wide width, then AccessCodeGenerationError.
"""
import secrets
from typing import Callable, Optional

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from studyshala.core.config import settings
from studyshala.core.exceptions import AccessCodeGenerationError
from studyshala.core.logging_config import logger
from studyshala.models.material import Material


def random_code(num_bytes: int) -> str:
    return secrets.token_hex(num_bytes).upper()


def normalize_code(code: Optional[str]) -> str:
    """Codes compare trimmed and case-insensitively"""
    return (code or "").strip().upper()


async def code_in_use(db: AsyncSession, code: str) -> bool:
    result = await db.execute(
        select(Material.id)
        .where(
            Material.is_active.is_(True),
            or_(Material.access_code == code, Material.legacy_code == code),
        )
        .limit(1)
    )
    return result.scalar_one_or_none() is not None


async def generate_access_code(
    db: AsyncSession,
    max_attempts: int = None,
    generator: Callable[[int], str] = random_code,
) -> str:
    """Return a code not held by any active material"""
    max_attempts = max_attempts or settings.ACCESS_CODE_MAX_ATTEMPTS
    widths = (settings.ACCESS_CODE_BYTES, settings.ACCESS_CODE_WIDE_BYTES)

    attempts = 0
    for width in widths:
        for _ in range(max_attempts):
            attempts += 1
            code = generator(width)
            if not await code_in_use(db, code):
                if width != settings.ACCESS_CODE_BYTES:
                    logger.warning(f"[AccessCode] Short code space crowded, issued {len(code)}-char code")
                return code

    logger.error(f"[AccessCode] No free code after {attempts} attempts")
    raise AccessCodeGenerationError(attempts)
