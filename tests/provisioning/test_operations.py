"""Tests for gateway_spine.provisioning.operations."""

import pytest

from gateway_spine.core.errors import InvalidIdentitySource
from gateway_spine.provisioning.operations import (
    adjust_operation_path,
    build_operation_spec,
    extract_template_parameters,
    operation_id_for,
)
from gateway_spine.testing import make_row


class TestOperationId:
    def test_method_and_endpoint(self):
        assert operation_id_for("GET", "Forecast Daily") == "get-forecast-daily"

    def test_blank_endpoint_still_has_method(self):
        assert operation_id_for("POST", "!!") == "post"


class TestTemplateParameters:
    """``{name}`` segments become required string parameters."""

    def test_required_strings(self):
        params = extract_template_parameters("/forecast/{city}/{day}")
        assert [(p.name, p.required, p.type) for p in params] == [("city", True, "string"), ("day", True, "string")]
        assert params[0].to_dict()["description"] == "city"

    def test_none(self):
        assert extract_template_parameters("/forecast") == ()

    def test_duplicates_collapsed(self):
        assert [p.name for p in extract_template_parameters("/{id}/x/{id}")] == ["id"]

    def test_wildcard_parameters_are_optional(self):
        params = extract_template_parameters("/files/{*path}", wildcard=True)
        assert [(p.name, p.required) for p in params] == [("path", False)]
        assert params[0].description == "Parameter path"


class TestAdjustOperationPath:
    @pytest.mark.parametrize(
        "path,expected",
        [
            ("/", "/{*path}"),
            (None, "/{*path}"),
            ("", "/{*path}"),
            ("/files/", "/files/{*path}"),
            ("/files//", "/files/{*path}"),
            ("/forecast/{city}", "/forecast/{city}"),
        ],
    )
    def test_adjust(self, path, expected):
        assert adjust_operation_path(path) == expected


class TestBuildOperationSpec:
    def test_weather_example(self):
        spec = build_operation_spec(make_row(endpoint_name="forecast"), "post")
        assert spec.operation_id == "post-forecast"
        assert spec.display_name == "forecast"
        assert spec.method == "POST"
        assert spec.url_template == "/forecast/{city}"
        assert [p.name for p in spec.template_parameters] == ["city"]

    def test_endpoint_defaults_to_api_name(self):
        spec = build_operation_spec(make_row(endpoint_name=""), "GET")
        assert spec.operation_id == "get-weather-api"

    def test_wildcard_mode(self):
        spec = build_operation_spec(make_row(operation_path_template="/"), "GET", wildcard=True)
        assert spec.url_template == "/{*path}"
        assert [(p.name, p.required) for p in spec.template_parameters] == [("path", False)]

    def test_unusable_identity(self):
        with pytest.raises(InvalidIdentitySource):
            build_operation_spec(make_row(endpoint_name="", api_display_name=""), "")
