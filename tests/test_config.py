"""Tests for primer.config.json loading."""

import json

import pytest

from primer_cli.config import AreaConfig, load_area_config, parse_area_config
from primer_cli.errors import ValidationError


def test_missing_file_is_empty(tmp_path):
    assert load_area_config(tmp_path) == AreaConfig.empty()


def test_loads_areas_in_order(tmp_path):
    (tmp_path / "primer.config.json").write_text(json.dumps({
        "areas": [
            {"name": "web", "applyTo": "frontend/**", "description": "UI"},
            {"name": "infra", "applyTo": ["deploy/**", "*.tf"]},
        ]
    }))
    config = load_area_config(tmp_path)
    assert [a.name for a in config.areas] == ["web", "infra"]
    assert config.areas[1].patterns == ("deploy/**", "*.tf")
    assert config.areas[1].description == ""


def test_invalid_json(tmp_path):
    (tmp_path / "primer.config.json").write_text("{nope")
    with pytest.raises(ValidationError, match="invalid JSON"):
        load_area_config(tmp_path)


@pytest.mark.parametrize("data,message", [
    ([], "expected a JSON object"),
    ({"areas": {}}, "must be a list"),
    ({"areas": ["web"]}, "must be an object"),
    ({"areas": [{"applyTo": "x/**"}]}, "name"),
    ({"areas": [{"name": "x", "applyTo": []}]}, "applyTo"),
    ({"areas": [{"name": "x", "applyTo": "a/**"}, {"name": "x", "applyTo": "b/**"}]}, "duplicate"),
    ({"areas": [{"name": "Web UI", "applyTo": "a/**"}, {"name": "web-ui", "applyTo": "b/**"}]}, "duplicate"),
])
def test_rejects_malformed_config(data, message):
    with pytest.raises(ValidationError, match=message):
        parse_area_config(data)


def test_no_areas_key(tmp_path):
    (tmp_path / "primer.config.json").write_text("{}")
    assert load_area_config(tmp_path).areas == ()
