"""Fixtures for command layer tests."""

from __future__ import annotations
from collections.abc import Iterator
import pytest
import respx
from linear_stub import API_KEY, API_URL, GraphQLStub
from lirt.config import Profile, ProfileStore


@pytest.fixture()
def graphql() -> Iterator[GraphQLStub]:
    stub = GraphQLStub()
    with respx.mock(assert_all_called=False) as router:
        router.post(API_URL).mock(side_effect=stub)
        yield stub


@pytest.fixture()
def logged_in(store: ProfileStore) -> ProfileStore:
    store.save(Profile(name="default", workspace="Acme"), api_key=API_KEY)
    return store
