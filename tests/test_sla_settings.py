"""SLA windows and thresholds come from settings."""

from datetime import timedelta

from src.config import Settings, SLAState, settings
from src.grievance.domain import RoutingConfig
from src.grievance.interfaces import dependencies
from src.grievance.infrastructure import StaticRoutingConfigProvider
from tests.conftest import T0, grievance_request


def test_sla_settings_read_from_environment(monkeypatch) -> None:
    monkeypatch.setenv("SLA_AT_RISK_HOURS", "48")
    monkeypatch.setenv("SLA_ESCALATION_EXTENSION_HOURS", "24")
    monkeypatch.setenv("SLA_DEFAULT_WINDOW_HOURS", "96")

    loaded = Settings(_env_file=None)

    assert loaded.sla_at_risk_hours == 48
    assert loaded.sla_escalation_extension_hours == 24
    assert loaded.sla_default_window_hours == 96


class TestSettingsWiring:
    async def test_at_risk_threshold(self, monkeypatch, uow_factory, file_grievance, citizen, clock) -> None:
        monkeypatch.setattr(settings, "sla_at_risk_hours", 48)
        service = dependencies.get_sla_status_service(uow_factory=uow_factory, clock=clock)

        grievance = await file_grievance()
        clock.advance(days=5, hours=12)

        # 36h left
        _, reading = await service.get_sla_status(grievance.id, citizen)
        assert reading.state == SLAState.AT_RISK

    async def test_escalation_extension(self, monkeypatch, uow_factory, publisher, file_grievance, officer, clock) -> None:
        monkeypatch.setattr(settings, "sla_escalation_extension_hours", 24)
        machine = dependencies.get_state_machine(
            uow_factory=uow_factory,
            routing_provider=StaticRoutingConfigProvider(),
            publisher=publisher,
            clock=clock
        )

        grievance = await file_grievance()
        clock.advance(days=6, hours=12)

        escalated, _ = await machine.apply_status_change(grievance.id, officer, "escalated")
        assert escalated.sla_deadline_at - clock.now == timedelta(hours=24)

    async def test_default_window(self, monkeypatch, uow_factory, publisher, citizen, clock) -> None:
        monkeypatch.setattr(settings, "sla_default_window_hours", 96)
        assert RoutingConfig().default_sla_hours == 96

        machine = dependencies.get_state_machine(
            uow_factory=uow_factory,
            routing_provider=StaticRoutingConfigProvider(),
            publisher=publisher,
            clock=clock
        )
        # No department row, so the default window applies
        grievance, _ = await machine.submit_grievance(citizen, grievance_request())
        assert grievance.sla_deadline_at == T0 + timedelta(hours=96)

    def test_routing_file_overrides_default_window(self, monkeypatch) -> None:
        monkeypatch.setattr(settings, "sla_default_window_hours", 96)
        assert RoutingConfig(default_sla_hours=48).default_sla_hours == 48
