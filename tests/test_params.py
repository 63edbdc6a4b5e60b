"""Tests for simulation parameters, validation and recompute triggers."""

import pytest
from pydantic import ValidationError

from core.params import (
    SimulationParams, FlowFieldType, ScatterMode, Recompute, PARAM_TRIGGERS,
    make_params, apply_update, param_bounds, resolve_name,
)
from core.safety import ParameterError
from fields import FIELDS


class TestModel:
    def test_defaults(self):
        p = SimulationParams()
        assert p.movement_speed == 0.5
        assert p.region_threshold == 30
        assert p.flow_field_type == FlowFieldType.PERLIN
        assert p.scatter_mode == ScatterMode.PERIODIC
        assert p.render_mode == "nearest"

    def test_flow_types_match_registry(self):
        assert {t.value for t in FlowFieldType} == set(FIELDS)

    def test_camel_case_accepted(self):
        p = make_params({"movementSpeed": 1.5, "flowFieldType": "vortex"})
        assert p.movement_speed == 1.5
        assert p.flow_field_type == FlowFieldType.VORTEX

    def test_camel_case_dump(self):
        data = SimulationParams().model_dump(by_alias=True)
        assert "movementSpeed" in data
        assert "scanLineInterference" in data

    def test_frozen(self):
        p = SimulationParams()
        with pytest.raises(ValidationError):
            p.movement_speed = 1.0

    @pytest.mark.parametrize("values", [
        {"movement_speed": 5.0},
        {"region_threshold": 2},
        {"mirror_count": 11},
        {"flow_field_type": "tornado"},
        {"scatter_mode": "sometimes"},
        {"render_mode": "smear"},
        {"color_harmony": 6.0},
        {"brightness_flow": 1.5},
        {"bogus": 1},
    ])
    def test_invalid_rejected(self, values):
        with pytest.raises(ParameterError):
            make_params(values)

    def test_harmony_and_brightness_flow(self):
        p = make_params({"colorHarmony": 1.5, "brightnessFlow": 0.3})
        assert (p.color_harmony, p.brightness_flow) == (1.5, 0.3)
        assert SimulationParams().color_harmony == 0.0
        assert PARAM_TRIGGERS["brightness_flow"] == Recompute.FIELD
        assert PARAM_TRIGGERS["color_harmony"] == Recompute.NONE

    def test_parameter_error_is_value_error(self):
        with pytest.raises(ValueError):
            make_params({"trails": -1})


class TestNames:
    def test_resolve(self):
        assert resolve_name("gravity_strength") == "gravity_strength"
        assert resolve_name("gravityStrength") == "gravity_strength"

    def test_unknown(self):
        with pytest.raises(ParameterError, match="Unknown parameter: warp"):
            resolve_name("warp")

    @pytest.mark.parametrize("name,bounds", [
        ("movement_speed", (0.1, 2.0)),
        ("region_threshold", (5, 100)),
        ("scatterStrength", (0.0, 100.0)),
        ("flow_field_type", (None, None)),
    ])
    def test_bounds(self, name, bounds):
        assert param_bounds(name) == bounds


class TestApplyUpdate:
    def test_every_parameter_has_a_trigger(self):
        assert set(PARAM_TRIGGERS) == set(SimulationParams.model_fields)

    @pytest.mark.parametrize("name,value,flags", [
        ("noise_scale", 0.05, Recompute.FIELD),
        ("region_threshold", 50, Recompute.REGIONS),
        ("gravity_strength", 2.0, Recompute.WELLS),
        ("mirror_count", 3, Recompute.MIRRORS),
        ("trails", 4.0, Recompute.TRAILS),
        ("flow_field_type", "vortex", Recompute.FIELD | Recompute.FIELD_STATE),
        ("flow_strength", 2.0, Recompute.FIELD),
        ("movement_speed", 1.0, Recompute.NONE),
        ("scan_line_interference", 3.0, Recompute.NONE),
    ])
    def test_triggers(self, name, value, flags):
        new, got = apply_update(SimulationParams(), name, value)
        assert got == flags
        assert getattr(new, name) == value

    def test_unchanged_value_triggers_nothing(self):
        _, flags = apply_update(SimulationParams(), "region_threshold", 30)
        assert flags == Recompute.NONE

    def test_original_untouched(self):
        p = SimulationParams()
        apply_update(p, "movement_speed", 1.2)
        assert p.movement_speed == 0.5

    def test_out_of_range_rejected(self):
        with pytest.raises(ParameterError):
            apply_update(SimulationParams(), "movement_speed", 9.0)

    def test_clamp(self):
        new, _ = apply_update(SimulationParams(), "movement_speed", 9.0, clamp=True)
        assert new.movement_speed == 2.0
        new, _ = apply_update(SimulationParams(), "region_threshold", 150, clamp=True)
        assert new.region_threshold == 100
        new, _ = apply_update(SimulationParams(), "mirror_count", 2.6, clamp=True)
        assert new.mirror_count == 3

    def test_clamp_ignores_enums(self):
        new, _ = apply_update(SimulationParams(), "flowFieldType", "swarm", clamp=True)
        assert new.flow_field_type == FlowFieldType.SWARM

    def test_string_values_coerced(self):
        new, _ = apply_update(SimulationParams(), "movement_speed", "1.5")
        assert new.movement_speed == 1.5

    def test_unknown_name(self):
        with pytest.raises(ParameterError):
            apply_update(SimulationParams(), "speed", 1.0)
