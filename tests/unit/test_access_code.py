"""
Unit Tests for access code generation
Tests for: format, collision handling, widening, exhaustion, legacy codes
"""
import re

import pytest

from studyshala.core.config import settings
from studyshala.core.exceptions import AccessCodeGenerationError
from studyshala.models.user import UserRole
from studyshala.services.access_code import (
    code_in_use,
    generate_access_code,
    normalize_code,
    random_code,
)
from tests.conftest import make_material, make_user


def scripted(*codes):
    """Generator returning the given codes in order, recording widths requested"""
    queue = iter(codes)
    widths = []

    def generator(num_bytes: int) -> str:
        widths.append(num_bytes)
        return next(queue)

    generator.widths = widths
    return generator


class TestCodeFormat:

    def test_random_code_is_upper_hex(self):
        code = random_code(4)

        assert re.fullmatch(r"[0-9A-F]{8}", code)

    def test_wide_code_length(self):
        assert len(random_code(6)) == 12

    def test_normalize(self):
        assert normalize_code("  abcd12ef ") == "ABCD12EF"
        assert normalize_code(None) == ""


class TestGenerateAccessCode:

    @pytest.mark.asyncio
    async def test_default_generator(self, db_session):
        code = await generate_access_code(db_session)

        assert re.fullmatch(r"[0-9A-F]{8}", code)

    @pytest.mark.asyncio
    async def test_skips_code_of_active_material(self, db_session):
        faculty = await make_user(db_session, UserRole.FACULTY)
        await make_material(db_session, faculty, access_code="AAAA0000")
        generator = scripted("AAAA0000", "BBBB1111")

        code = await generate_access_code(db_session, generator=generator)

        assert code == "BBBB1111"
        assert generator.widths == [settings.ACCESS_CODE_BYTES, settings.ACCESS_CODE_BYTES]

    @pytest.mark.asyncio
    async def test_legacy_code_counts_as_taken(self, db_session):
        faculty = await make_user(db_session, UserRole.FACULTY)
        await make_material(db_session, faculty, access_code="AAAA0000", legacy_code="CSE101")

        code = await generate_access_code(db_session, generator=scripted("CSE101", "CCCC2222"))

        assert code == "CCCC2222"

    @pytest.mark.asyncio
    async def test_code_of_retired_material_is_reusable(self, db_session):
        faculty = await make_user(db_session, UserRole.FACULTY)
        await make_material(db_session, faculty, access_code="DEAD0000", is_active=False)

        assert await code_in_use(db_session, "DEAD0000") is False
        code = await generate_access_code(db_session, generator=scripted("DEAD0000"))

        assert code == "DEAD0000"

    @pytest.mark.asyncio
    async def test_widens_after_short_attempts_exhausted(self, db_session):
        faculty = await make_user(db_session, UserRole.FACULTY)
        await make_material(db_session, faculty, access_code="AAAA0000")
        generator = scripted("AAAA0000", "AAAA0000", "AAAA0000", "ABCDEF012345")

        code = await generate_access_code(db_session, max_attempts=3, generator=generator)

        assert code == "ABCDEF012345"
        assert generator.widths == [
            settings.ACCESS_CODE_BYTES,
            settings.ACCESS_CODE_BYTES,
            settings.ACCESS_CODE_BYTES,
            settings.ACCESS_CODE_WIDE_BYTES,
        ]

    @pytest.mark.asyncio
    async def test_fails_after_bounded_attempts(self, db_session):
        faculty = await make_user(db_session, UserRole.FACULTY)
        await make_material(db_session, faculty, access_code="AAAA0000")
        generator = scripted(*["AAAA0000"] * 10)

        with pytest.raises(AccessCodeGenerationError) as exc_info:
            await generate_access_code(db_session, max_attempts=2, generator=generator)

        assert exc_info.value.details["attempts"] == 4
        assert exc_info.value.status_code == 500
        assert len(generator.widths) == 4
