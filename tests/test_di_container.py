from datetime import date

import pytest

from coachplan.application.authoring import AuthoringService
from coachplan.application.completion_sync import CompletionSync
from coachplan.application.instantiation import InstantiationEngine
from coachplan.application.plan_lifecycle import PlanLifecycleManager
from coachplan.application.schedule_store import ScheduleStore
from coachplan.config import settings
from coachplan.domain.week_keys import WeekKey
from coachplan.infrastructure.di_container import Container
from coachplan.infrastructure.postgres_dal import PostgresDal
from tests.di_utils import build_stub_container
from tests.memory_store import MemoryStore, make_exercise


def test_services_share_one_store():
    store = MemoryStore()
    container = build_stub_container(dal=store)

    lifecycle = container.resolve(PlanLifecycleManager)

    assert lifecycle.plans is store
    assert lifecycle.store is container.resolve(ScheduleStore)
    assert lifecycle.engine is container.resolve(InstantiationEngine)
    assert container.resolve(AuthoringService).templates is store
    assert container.resolve(PostgresDal) is store


def test_completion_sync_uses_configured_policy():
    sync = build_stub_container().resolve(CompletionSync)

    assert sync.max_attempts == settings.REMOTE_MAX_ATTEMPTS
    assert sync.backoff_seconds == settings.REMOTE_BACKOFF_SECONDS
    assert sync.grace_seconds == settings.RESUME_GRACE_SECONDS


def test_wired_graph_replicates_a_plan():
    store = MemoryStore()
    store.seed_day("stu", "coach", WeekKey(date(2024, 1, 1)), 2, [make_exercise("Squat", 1)])
    container = build_stub_container(dal=store)

    result = container.resolve(PlanLifecycleManager).create(
        "stu", "coach", duration_weeks=2, start_date=date(2024, 1, 1)
    )

    assert result.replication.completed_offsets == [1]
    assert len(store.days) == 2


def test_function_overrides_receive_the_container():
    sentinel = object()
    container = build_stub_container(extra_overrides={ScheduleStore: lambda c: sentinel})
    assert container.resolve(ScheduleStore) is sentinel


def test_unknown_service_raises():
    with pytest.raises(KeyError):
        Container().resolve(PostgresDal)


def test_register_requires_a_provider():
    with pytest.raises(ValueError):
        Container().register(PostgresDal)
