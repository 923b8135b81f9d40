"""Tests for grievance identifiers, category routing, transitions and ledger payloads."""

from datetime import date

import pytest

from src.config import EventType, GrievanceCategory, GrievanceStatus
from src.core import ValidationException
from src.grievance.domain import (
    ALLOWED_TRANSITIONS,
    EVENT_PAYLOAD_MODELS,
    STATUS_EVENT_TYPES,
    RoutingConfig,
    can_transition,
    format_grievance_id,
    grievance_id_sequence,
    is_valid_grievance_id,
    normalize_category,
    parse_event_payload,
    parse_event_type,
)


# -----------------------------------------------------------------------
# Identifiers
# -----------------------------------------------------------------------


class TestGrievanceId:
    def test_format(self) -> None:
        assert format_grievance_id(2025, 42) == "JM-2025-000042"
        assert grievance_id_sequence("JM-2025-000042") == 42

    @pytest.mark.parametrize("sequence", [0, 1_000_000])
    def test_sequence_out_of_range(self, sequence) -> None:
        with pytest.raises(ValidationException):
            format_grievance_id(2025, sequence)

    @pytest.mark.parametrize("value, valid", [
        ("JM-2025-000001", True),
        ("JM-2025-1", False),
        ("jm-2025-000001", False),
        ("JM-2025-000001 ", False),
        (None, False),
    ])
    def test_is_valid(self, value, valid) -> None:
        assert is_valid_grievance_id(value) is valid


# -----------------------------------------------------------------------
# Categories and routing
# -----------------------------------------------------------------------


class TestCategories:
    @pytest.mark.parametrize("raw, expected", [
        ("Roads & Transport", GrievanceCategory.ROADS_TRANSPORT),
        ("roads_transport", GrievanceCategory.ROADS_TRANSPORT),
        ("  WATER supply ", GrievanceCategory.WATER_SUPPLY),
        ("Garbage", GrievanceCategory.SANITATION),
        ("Parks & Recreation", GrievanceCategory.PARKS_RECREATION),
        ("stray dogs", GrievanceCategory.OTHER),
        ("", GrievanceCategory.OTHER),
        (None, GrievanceCategory.OTHER),
    ])
    def test_normalize(self, raw, expected) -> None:
        assert normalize_category(raw) == expected

    def test_default_routing(self) -> None:
        config = RoutingConfig()
        assert config.department_for(GrievanceCategory.WATER_SUPPLY) == "water-supply"
        assert config.department_for(GrievanceCategory.PARKS_RECREATION) == "public-parks"
        assert config.department_for(GrievanceCategory.EDUCATION) == "general"

    def test_keys_in_any_spelling(self) -> None:
        config = RoutingConfig(
            category_departments={"Public Transport": "roads-transport"},
            fallback_department="helpdesk"
        )
        assert config.department_for(GrievanceCategory.PUBLIC_TRANSPORT) == "roads-transport"
        assert config.department_for(GrievanceCategory.WATER_SUPPLY) == "helpdesk"


# -----------------------------------------------------------------------
# Lifecycle
# -----------------------------------------------------------------------


class TestTransitions:
    def test_tables_cover_every_status(self) -> None:
        assert set(ALLOWED_TRANSITIONS) == set(GrievanceStatus)
        assert set(STATUS_EVENT_TYPES) == set(GrievanceStatus)
        assert set(EVENT_PAYLOAD_MODELS) == set(EventType)

    def test_final_closed_is_terminal(self) -> None:
        for status in GrievanceStatus:
            assert not can_transition(GrievanceStatus.FINAL_CLOSED, status)

    def test_closed_only_finalises(self) -> None:
        assert can_transition(GrievanceStatus.CLOSED, GrievanceStatus.FINAL_CLOSED)
        assert not can_transition(GrievanceStatus.CLOSED, GrievanceStatus.REOPENED)
        assert not can_transition(GrievanceStatus.CLOSED, GrievanceStatus.IN_PROGRESS)

    def test_nothing_moves_back_to_submitted(self) -> None:
        for status in GrievanceStatus:
            assert not can_transition(status, GrievanceStatus.SUBMITTED)

    def test_repeat_progress_updates(self) -> None:
        assert can_transition(GrievanceStatus.IN_PROGRESS, GrievanceStatus.IN_PROGRESS)
        assert can_transition(GrievanceStatus.ESCALATED, GrievanceStatus.ESCALATED)

    def test_work_must_be_acknowledged_first(self) -> None:
        assert not can_transition(GrievanceStatus.SUBMITTED, GrievanceStatus.IN_PROGRESS)


# -----------------------------------------------------------------------
# Payloads
# -----------------------------------------------------------------------


class TestEventTypes:
    def test_parse(self) -> None:
        assert parse_event_type("PROOF_UPLOADED") == EventType.PROOF_UPLOADED

    @pytest.mark.parametrize("value", [None, "", "proof_uploaded", "TELEPORTED"])
    def test_rejects_unknown(self, value) -> None:
        with pytest.raises(ValidationException):
            parse_event_type(value)


class TestPayloads:
    def test_feedback_rating_bounds(self) -> None:
        assert parse_event_payload(EventType.CITIZEN_FEEDBACK_SUBMITTED, {"rating": 5}).to_json() == {"rating": 5}
        with pytest.raises(ValidationException):
            parse_event_payload(EventType.CITIZEN_FEEDBACK_SUBMITTED, {"rating": 6})

    def test_unknown_keys_rejected(self) -> None:
        with pytest.raises(ValidationException) as exc_info:
            parse_event_payload(EventType.UPDATE_PROVIDED, {"note": "ok", "secret_flag": True})
        assert exc_info.value.details["errors"]

    def test_proof_needs_files(self) -> None:
        with pytest.raises(ValidationException):
            parse_event_payload(EventType.PROOF_UPLOADED, {"file_urls": []})

    def test_delay_reason_is_closed_set(self) -> None:
        payload = parse_event_payload(
            EventType.DELAY_EXPLANATION_SUBMITTED,
            {"reason": "contractor_delay", "explanation": "Pipes back-ordered", "estimated_resolution_date": "2025-02-01"}
        )
        assert payload.to_json() == {
            "reason": "contractor_delay",
            "explanation": "Pipes back-ordered",
            "estimated_resolution_date": "2025-02-01",
        }
        with pytest.raises(ValidationException):
            parse_event_payload(EventType.DELAY_EXPLANATION_SUBMITTED, {"reason": "mercury_retrograde", "explanation": "x"})

    def test_status_payload_has_full_shape(self) -> None:
        payload = parse_event_payload(
            EventType.UPDATE_PROVIDED,
            {"status": "in_progress", "estimated_resolution_date": date(2025, 2, 1)}
        )
        assert payload.to_json() == {"status": "in_progress", "note": "", "estimated_resolution_date": "2025-02-01"}

        closed = parse_event_payload(EventType.COMPLAINT_CLOSED, {"status": "closed"})
        assert closed.to_json() == {"status": "closed", "note": "", "estimated_resolution_date": None}

    def test_ledger_only_update_drops_empty_fields(self) -> None:
        payload = parse_event_payload(EventType.UPDATE_PROVIDED, {"note": "Valve replaced"})
        assert payload.to_json() == {"note": "Valve replaced"}

    def test_override_requires_reason(self) -> None:
        with pytest.raises(ValidationException):
            parse_event_payload(EventType.OVERRIDE, {})

    def test_missing_payload_is_empty(self) -> None:
        assert parse_event_payload(EventType.REOPENED, None).to_json() == {}
