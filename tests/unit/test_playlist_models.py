"""
Unit tests for playlist data models: catalog parsing, session
serialization and restore validation.
"""

import json

import pytest
from pydantic import ValidationError

from src.playlist.builder import build_session
from src.playlist.errors import InvalidSessionError, PlaylistContractError
from src.playlist.gates import record_gate_result
from src.playlist.models import (
    AdaptiveConfiguration,
    AdaptiveMode,
    DecisionAction,
    GateResult,
    GateSettings,
    GateStatus,
    LearningUnit,
    NodeProgress,
    Session,
    UnitCategory,
)
from src.playlist.progress import update_node_progress
from src.playlist.resolver import apply_decision, resolve_next
from src.playlist.session_store import load_catalog


@pytest.fixture
def played(adaptive_catalog, full_config):
    """A session with progress in every field."""
    session = build_session(adaptive_catalog, full_config, enrollment_id="enr-9", module_id="mod-2")
    session = update_node_progress(session, "node-a", NodeProgress(mastery=0.9, attempts=4))
    session = apply_decision(session, resolve_next(session, full_config))
    session = record_gate_result(
        session, GateResult(unit_id="quiz", passed=False, score=0.3, attempt_number=1, failed_nodes=("n1",))
    )
    return session


class TestEnums:
    def test_adaptive_flags(self):
        assert AdaptiveMode.OFF.is_adaptive is False
        assert AdaptiveMode.GUIDED.is_adaptive is True
        assert AdaptiveMode.FULL.is_adaptive is True

    def test_moving_actions(self):
        assert {a for a in DecisionAction if a.moves} == {
            DecisionAction.ADVANCE,
            DecisionAction.BRANCH,
            DecisionAction.COMPLETE,
        }

    def test_gate_status_icons_distinct(self):
        assert len({status.icon for status in GateStatus}) == 3


class TestLearningUnit:
    def test_from_catalog_json(self):
        unit = LearningUnit.from_dict(
            {
                "id": "lu-7",
                "title": "Subnetting",
                "type": "quiz",
                "category": "graded",
                "isRequired": False,
                "sequence": 7,
                "adaptive": {
                    "teachesNodes": ["n1", "n2"],
                    "assessesNodes": ["n2", "n3"],
                    "isGate": True,
                    "gateConfig": {"masteryThreshold": 0.9, "maxAttempts": 2},
                },
            }
        )

        assert unit.category is UnitCategory.GRADED
        assert unit.is_required is False
        assert unit.node_ids == ("n1", "n2", "n3")
        assert unit.adaptive.gate.max_attempts == 2
        assert unit.adaptive.gate.min_questions == 3

    def test_defaults(self):
        unit = LearningUnit.from_dict({"id": "x", "title": "X"})

        assert unit.type == "media"
        assert unit.is_required is True
        assert unit.sequence == 0
        assert unit.node_ids == ()

    def test_unknown_category_rejected(self):
        with pytest.raises(ValueError):
            LearningUnit.from_dict({"id": "x", "title": "X", "category": "elective"})


class TestGateSettings:
    @pytest.mark.parametrize("max_attempts", [0, -1, 1.5, True, "3"])
    def test_invalid_cap_rejected(self, max_attempts):
        with pytest.raises(PlaylistContractError):
            GateSettings(max_attempts=max_attempts)

    def test_unlimited_by_default(self):
        assert GateSettings().max_attempts is None

    @pytest.mark.parametrize("retries, attempts", [(0, 1), (2, 3), (-1, None)])
    def test_max_retries_converted(self, retries, attempts):
        assert GateSettings.from_dict({"maxRetries": retries}).max_attempts == attempts

    def test_max_attempts_wins_over_max_retries(self):
        settings = GateSettings.from_dict({"maxAttempts": 4, "maxRetries": 1})

        assert settings.max_attempts == 4

    def test_round_trip_keeps_cap(self):
        settings = GateSettings.from_dict({"maxRetries": 2})

        assert GateSettings.from_dict(settings.to_dict()) == settings

    def test_bad_cap_in_catalog_rejected(self, tmp_path):
        path = tmp_path / "catalog.json"
        path.write_text(
            json.dumps(
                [{"id": "g", "title": "G", "adaptive": {"isGate": True, "gateConfig": {"maxAttempts": 0}}}]
            ),
            encoding="utf-8",
        )

        with pytest.raises(PlaylistContractError):
            load_catalog(path)


class TestAdaptiveConfiguration:
    def test_defaults(self):
        config = AdaptiveConfiguration()

        assert config.mode is AdaptiveMode.OFF
        assert config.mastery_threshold == 0.7
        assert config.gate_categories == frozenset({UnitCategory.GRADED})
        assert config.max_gate_attempts is None

    @pytest.mark.parametrize("threshold", [-0.1, 1.1])
    def test_threshold_range(self, threshold):
        with pytest.raises(ValidationError):
            AdaptiveConfiguration(mastery_threshold=threshold)

    def test_attempt_cap_positive(self):
        with pytest.raises(ValidationError):
            AdaptiveConfiguration(max_gate_attempts=0)

    def test_json_round_trip(self):
        config = AdaptiveConfiguration(
            mode="guided",
            gate_categories={"assignment", "graded"},
            max_gate_attempts=3,
        )

        restored = AdaptiveConfiguration.model_validate(config.model_dump(mode="json"))
        assert restored == config


class TestSessionSerialization:
    def test_to_dict_is_json_serializable(self, played):
        data = json.loads(json.dumps(played.to_dict()))

        assert data["enrollmentId"] == "enr-9"
        assert data["currentIndex"] == played.current_index
        assert data["skipped"] == ["opt-a"]
        assert data["gateAttempts"]["quiz"][0]["failedNodes"] == ["n1"]
        assert data["nodeProgress"]["node-a"] == {"mastery": 0.9, "attempts": 4}
        assert data["isComplete"] is False
        assert data["playlist"][3]["isGate"] is True

    def test_restore_matches_original(self, played):
        restored = Session.from_dict(json.loads(json.dumps(played.to_dict())))

        assert restored == played
        assert restored.playlist[1].unit == played.playlist[1].unit

    def test_maps_are_read_only(self, played):
        with pytest.raises(TypeError):
            played.node_progress["node-z"] = NodeProgress(mastery=0.1)
        with pytest.raises(TypeError):
            played.gate_attempts["quiz"] = ()

    def test_session_is_frozen(self, played):
        with pytest.raises(AttributeError):
            played.current_index = 0


class TestRestoreValidation:
    def _data(self, played):
        return json.loads(json.dumps(played.to_dict()))

    def test_missing_fields_rejected(self):
        with pytest.raises(InvalidSessionError):
            Session.from_dict({"playlist": [{"id": "x"}]})

    def test_index_out_of_range(self, played):
        data = self._data(played)
        data["currentIndex"] = 9

        with pytest.raises(InvalidSessionError):
            Session.from_dict(data)

    def test_stray_completed_id(self, played):
        data = self._data(played)
        data["completed"].append("ghost")

        with pytest.raises(InvalidSessionError):
            Session.from_dict(data)

    def test_stray_gate_attempts(self, played):
        data = self._data(played)
        data["gateAttempts"]["ghost"] = []

        with pytest.raises(InvalidSessionError):
            Session.from_dict(data)

    def test_non_sequential_attempts(self, played):
        data = self._data(played)
        data["gateAttempts"]["quiz"][0]["attemptNumber"] = 2

        with pytest.raises(InvalidSessionError):
            Session.from_dict(data)

    def test_duplicate_entries(self, played):
        data = self._data(played)
        data["playlist"].append(data["playlist"][0])

        with pytest.raises(InvalidSessionError):
            Session.from_dict(data)

    def test_mastery_out_of_range(self, played):
        data = self._data(played)
        data["nodeProgress"]["node-a"]["mastery"] = 2.0

        with pytest.raises(InvalidSessionError):
            Session.from_dict(data)

    def test_error_is_value_error(self):
        with pytest.raises(ValueError):
            Session.from_dict({"currentIndex": "abc"})
