"""Shared fixtures for workflow tests."""

from datetime import datetime, timezone

import pytest

from marketflow_workflows.mutator import OptimisticMutator
from marketflow_workflows.notifications import Notifier
from marketflow_workflows.testing import FakeCollaboratorAPI, NotificationRecorder


@pytest.fixture
def api() -> FakeCollaboratorAPI:
    """In-memory collaborator with one shipped order."""
    return FakeCollaboratorAPI(entities={
        "ord-1": {"status": "shipped", "total": 120},
    })


@pytest.fixture
def notifier() -> Notifier:
    return Notifier()


@pytest.fixture
async def recorder(notifier) -> NotificationRecorder:
    """Collects every notification published through ``notifier``."""
    return await NotificationRecorder().attach(notifier)


@pytest.fixture
def mutator(notifier) -> OptimisticMutator:
    return OptimisticMutator(notifier=notifier)


@pytest.fixture
def fixed_clock():
    moment = datetime(2026, 3, 1, 9, 30, tzinfo=timezone.utc)
    return lambda: moment
