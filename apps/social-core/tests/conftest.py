"""Shared fixtures for the social core tests"""

import pytest
import sys
import os

# Add app directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from tests.fixtures.fake_database import FakeDatabase
from tests.fixtures.social_fixtures import sample_profiles, sample_organizations
from services.notification_service import NotificationService
from services.follow_service import FollowService
from services.follow_events import FollowEventBus
from services.connection_service import ConnectionService


@pytest.fixture
def db():
    """In-memory database seeded with profiles and organizations"""
    return FakeDatabase(
        {
            "profiles": sample_profiles(),
            "organizations": sample_organizations(),
        }
    )


@pytest.fixture
def event_bus():
    return FollowEventBus()


@pytest.fixture
def notification_service(db):
    return NotificationService(db)


@pytest.fixture
def follow_service(db, notification_service, event_bus):
    return FollowService(db, notifications=notification_service, events=event_bus)


@pytest.fixture
def connection_service(db, notification_service, follow_service):
    return ConnectionService(db, notifications=notification_service, follows=follow_service)
