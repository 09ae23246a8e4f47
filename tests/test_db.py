"""Tests for database URL handling."""

import pytest

from clubgoals.db import async_database_url


@pytest.mark.parametrize(
    "url, expected",
    [
        ("postgres://h:5432/db", "postgresql+asyncpg://h:5432/db"),
        ("postgresql://h/db", "postgresql+asyncpg://h/db"),
        ("postgresql+asyncpg://h/db", "postgresql+asyncpg://h/db"),
    ],
)
def test_async_database_url(url, expected):
    assert async_database_url(url) == expected
