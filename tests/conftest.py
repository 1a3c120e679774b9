"""
Shared pytest fixtures and configuration for keyspine tests.

This module provides:
- Settings cache and environment isolation
- A fresh IndexRegistry per test
- Sample DynamoDB-style records and field type tables
- A sample User/Order index with a sparse GSI
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import pytest

from keyspine.core.settings import clear_settings_cache
from keyspine.keys.index import GSIDefinition, KeyDef, PrimaryIndex, PrimaryKeyDefinition, SecondaryIndex, TableDefinition
from keyspine.keys.registry import IndexRegistry
from keyspine.keys.values import ValueDef


# =============================================================================
# Test Markers Configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Mark every test without an explicit marker as a unit test."""
    for item in items:
        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "integration"}):
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Isolation Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def clean_settings(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    """Drop KEYSPINE_* variables and any cached settings around each test."""
    for key in list(os.environ):
        if key.startswith("KEYSPINE_"):
            monkeypatch.delenv(key, raising=False)
    # No stray .env file from the working directory
    monkeypatch.chdir(tmp_path)
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def registry() -> IndexRegistry:
    return IndexRegistry()


# =============================================================================
# Sample Data
# =============================================================================


@pytest.fixture
def user_record() -> dict[str, Any]:
    return {
        "id": {"S": "42"},
        "email": {"S": "ada@example.com"},
        "age": {"N": "36"},
        "avatar": {"B": b"\x89PNG"},
        "profile": {"M": {"org": {"M": {"id": {"S": "acme"}}}, "tags": {"L": [{"S": "a"}]}}},
        "active": {"BOOL": True},
    }


@pytest.fixture
def users_table() -> TableDefinition:
    return TableDefinition(
        name="users",
        key_definitions=PrimaryKeyDefinition(KeyDef("pk"), KeyDef("sk")),
        gsis=(
            GSIDefinition("gsi1", PrimaryKeyDefinition(KeyDef("gsi1pk"), KeyDef("gsi1sk"))),
            GSIDefinition("gsi2", PrimaryKeyDefinition(KeyDef("gsi2pk"))),
        ),
        ttl_key="expires_at",
    )


@pytest.fixture
def user_index(users_table: TableDefinition) -> PrimaryIndex:
    return PrimaryIndex(
        table=users_table,
        partition_key=ValueDef.of_format("USER#{id}"),
        sort_key=ValueDef.string("PROFILE"),
        secondary=(
            SecondaryIndex(users_table.gsis[0], ValueDef.of_format("EMAIL#{email}"), ValueDef.of_format("USER#{id}")),
            SecondaryIndex(users_table.gsis[1], ValueDef.field("nickname")),
        ),
        entity="User",
    )


@pytest.fixture
def user_field_types() -> dict[str, str]:
    return {"id": "string", "email": "string", "nickname": "string"}
