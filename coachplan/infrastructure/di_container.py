# coachplan/infrastructure/di_container.py
"""Dependency injection container for coachplan services."""
from __future__ import annotations

from functools import lru_cache
import inspect
from typing import Any, Callable, Dict, Type

from coachplan.application.authoring import AuthoringService
from coachplan.application.completion_sync import CompletionSync
from coachplan.application.instantiation import InstantiationEngine
from coachplan.application.plan_lifecycle import PlanLifecycleManager
from coachplan.application.schedule_store import ScheduleStore
from coachplan.config import settings as app_settings
from coachplan.domain.configuration import DomainSettings, configure as configure_domain
from coachplan.infrastructure.postgres_dal import PostgresDal
from coachplan.infrastructure.progress_log import JsonFileProgressLog

configure_domain(
    DomainSettings(
        default_plan_weeks=app_settings.DEFAULT_PLAN_WEEKS,
        expiring_soon_days=app_settings.EXPIRING_SOON_DAYS,
        critical_days=app_settings.CRITICAL_DAYS,
    )
)

ServiceType = Type[Any]
Factory = Callable[["Container"], Any]


class Container:
    """Minimal service container supporting factories and instances."""

    def __init__(self) -> None:
        self._factories: Dict[ServiceType, Factory] = {}
        self._instances: Dict[ServiceType, Any] = {}

    def register(
        self,
        service: ServiceType,
        *,
        factory: Factory | None = None,
        instance: Any | None = None,
    ) -> None:
        if instance is not None:
            self._instances[service] = instance
            self._factories.pop(service, None)
            return
        if factory is None:
            raise ValueError("Either factory or instance must be provided.")
        self._factories[service] = factory
        self._instances.pop(service, None)

    def resolve(self, service: ServiceType) -> Any:
        if service in self._instances:
            return self._instances[service]
        try:
            factory = self._factories[service]
        except KeyError as exc:
            raise KeyError(f"No provider registered for {service!r}") from exc
        instance = factory(self)
        # factories run once per container
        self._instances[service] = instance
        return instance


def _register_defaults(container: Container) -> None:
    """Register the production service graph with the container."""
    container.register(PostgresDal, factory=lambda _c: PostgresDal())
    container.register(
        JsonFileProgressLog,
        factory=lambda _c: JsonFileProgressLog(app_settings.progress_log_path),
    )
    container.register(ScheduleStore, factory=lambda c: ScheduleStore(c.resolve(PostgresDal)))
    container.register(
        InstantiationEngine,
        factory=lambda c: InstantiationEngine(
            store=c.resolve(ScheduleStore),
            templates=c.resolve(PostgresDal),
        ),
    )
    container.register(
        PlanLifecycleManager,
        factory=lambda c: PlanLifecycleManager(
            plans=c.resolve(PostgresDal),
            store=c.resolve(ScheduleStore),
            engine=c.resolve(InstantiationEngine),
        ),
    )
    container.register(
        CompletionSync,
        factory=lambda c: CompletionSync(
            remote=c.resolve(PostgresDal),
            progress_log=c.resolve(JsonFileProgressLog),
            store=c.resolve(ScheduleStore),
            max_attempts=app_settings.REMOTE_MAX_ATTEMPTS,
            backoff_seconds=app_settings.REMOTE_BACKOFF_SECONDS,
            grace_seconds=app_settings.RESUME_GRACE_SECONDS,
        ),
    )
    container.register(
        AuthoringService,
        factory=lambda c: AuthoringService(
            store=c.resolve(ScheduleStore),
            templates=c.resolve(PostgresDal),
        ),
    )


def _wrap_override(provider: Any) -> Factory:
    if inspect.isfunction(provider) or inspect.ismethod(provider):
        signature = inspect.signature(provider)
        if len(signature.parameters) == 0:
            return lambda _c, fn=provider: fn()
        return lambda c, fn=provider: fn(c)
    if isinstance(provider, type):
        return lambda _c, cls=provider: cls()
    return lambda _c, value=provider: value


def build_container(overrides: Dict[ServiceType, Any] | None = None) -> Container:
    """Create a new container with optional dependency overrides."""
    container = Container()
    _register_defaults(container)

    if overrides:
        for service, provider in overrides.items():
            factory = _wrap_override(provider)
            if isinstance(provider, (type,)) or inspect.isfunction(provider) or inspect.ismethod(provider):
                container.register(service, factory=factory)
            else:
                container.register(service, instance=factory(container))

    return container


@lru_cache(maxsize=1)
def get_container() -> Container:
    """Return a cached container instance for application use."""
    return build_container()


__all__ = ["Container", "build_container", "get_container"]
