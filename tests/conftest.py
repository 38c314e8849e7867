"""
Pytest configuration for the application
"""
from typing import AsyncGenerator

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI

from auth.dependencies import get_stripe_service
from auth.middleware import AuthMiddleware, get_auth_middleware
from index import create_app

from fakes import FakeStripeService, FakeSupabase
from helpers import JWT_SECRET, WEBHOOK_SECRET, seed_plans


@pytest.fixture
def supabase() -> FakeSupabase:
    """
    Empty in-memory store with the two paid plans
    """
    client = FakeSupabase()
    seed_plans(client)
    return client


@pytest.fixture
def stripe_service() -> FakeStripeService:
    return FakeStripeService(webhook_secret=WEBHOOK_SECRET)


@pytest.fixture
def test_app(supabase: FakeSupabase, stripe_service: FakeStripeService) -> FastAPI:
    """
    Create a FastAPI test application wired to the fakes.
    """
    app = create_app()
    auth = AuthMiddleware(supabase, JWT_SECRET)

    app.dependency_overrides[get_auth_middleware] = lambda: auth
    app.dependency_overrides[get_stripe_service] = lambda: stripe_service
    yield app
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(test_app: FastAPI) -> AsyncGenerator[httpx.AsyncClient, None]:
    """
    Create an async HTTP client for testing.
    """
    transport = httpx.ASGITransport(app=test_app)
    async with httpx.AsyncClient(
        transport=transport,
        base_url="http://test",
    ) as client:
        yield client
