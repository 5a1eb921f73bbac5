"""Shared builders for store-backed tests."""

import pytest

from kith.application import RelationshipSyncEngine
from kith.infrastructure import InMemoryDocumentStore

FOLDER = "contacts"
ANN_UID = "0b1c6a0e-7d3f-4a51-9d3e-2f1a6c0e9a11"
BOB_UID = "5e2d9c4b-1a7f-4c3e-8b6d-0f9e8d7c6b5a"
JANE_UID = "9a8b7c6d-5e4f-4a3b-9c2d-1e0f9a8b7c6d"


def ref(name: str) -> str:
    return f"{FOLDER}/{name}.md"


@pytest.fixture
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def engine(store) -> RelationshipSyncEngine:
    return RelationshipSyncEngine(store, FOLDER)
