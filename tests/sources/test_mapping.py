"""Tests for gateway_spine.sources.mapping."""

import pytest

from gateway_spine.core.errors import RowMappingError
from gateway_spine.core.models import RateLimitPeriod
from gateway_spine.sources.mapping import (
    DEFAULT_KEY_HEADER,
    DEFAULT_PRODUCT,
    MAP_STEP,
    extract_domain_tags,
    map_row,
    map_rows,
    parse_methods,
    split_list,
)


class TestMapRow:
    """Column → RowConfig mapping."""

    def test_full_record(self, weather_record):
        config = map_row(weather_record, 1)
        assert config.api_display_name == "Weather API"
        assert config.url_path_suffix == "weather"
        assert config.service_protocol == "https"
        assert config.service_host == "weather.internal.example.com"
        assert config.service_url == "https://weather.internal.example.com"
        assert config.endpoint_name == "forecast"
        assert config.http_methods == ("GET", "POST")
        assert config.operation_path_template == "/forecast/{city}"
        assert config.outbound_rewrite_target == "/v2/forecast"
        assert config.rate_limit.ceiling == 100
        assert config.rate_limit.period is RateLimitPeriod.HOUR
        assert config.qps_limit == 5
        assert config.organization_tag == "Climate"
        assert config.product_names == ("Weather Basic", "Weather Pro")
        assert config.row_number == 1
        assert config.source_record == weather_record

    def test_defaults(self):
        config = map_row({"APIName": "Orders", "systemDomains": "orders.internal"})
        assert config.service_protocol == "https"
        assert config.http_methods == ("GET",)
        assert config.operation_path_template == "/"
        assert config.outbound_rewrite_target is None
        assert config.auth_key_header_name == DEFAULT_KEY_HEADER
        assert config.product_names == (DEFAULT_PRODUCT,)
        assert config.endpoint_name == "Orders"
        assert config.rate_limit.ceiling == 0
        assert config.rate_limit.period is RateLimitPeriod.UNKNOWN
        assert config.qps_limit == 0

    def test_first_system_domain_is_service_host(self):
        config = map_row({"APIName": "A", "systemDomains": "one.internal, two.internal"})
        assert config.service_host == "one.internal"

    def test_unknown_period_kept_as_unknown(self):
        config = map_row({"APIName": "A", "systemDomains": "a.internal", "rateLimitPeriod": "Fortnight"})
        assert config.rate_limit.period is RateLimitPeriod.UNKNOWN

    def test_spreadsheet_float_strings(self):
        config = map_row(
            {"APIName": "A", "systemDomains": "a.internal", "rateLimitCeiling": "100.0", "qpsLimitCeiling": " "}
        )
        assert config.rate_limit.ceiling == 100
        assert config.qps_limit == 0

    def test_custom_key_header(self):
        config = map_row({"APIName": "A", "systemDomains": "a.internal", "apiKeyValueLocationKey": "X-Api-Key"})
        assert config.auth_key_header_name == "X-Api-Key"

    def test_missing_api_name(self):
        with pytest.raises(RowMappingError) as exc_info:
            map_row({"systemDomains": "a.internal"}, 7)
        assert exc_info.value.field == "APIName"
        assert exc_info.value.context.row == 7

    def test_missing_system_domains(self):
        with pytest.raises(RowMappingError, match="systemDomains"):
            map_row({"APIName": "A"})

    def test_missing_system_domains_allowed_when_not_required(self):
        config = map_row({"APIName": "A"}, require_service=False)
        assert config.service_host == ""

    def test_non_numeric_limit(self):
        with pytest.raises(RowMappingError) as exc_info:
            map_row({"APIName": "A", "systemDomains": "a.internal", "qpsLimitCeiling": "lots"}, 2)
        assert exc_info.value.field == "qpsLimitCeiling"

    @pytest.mark.parametrize("value", ["inf", "1e400", float("inf"), "-inf", "nan"])
    def test_non_finite_limit(self, value):
        with pytest.raises(RowMappingError) as exc_info:
            map_row({"APIName": "A", "systemDomains": "a.internal", "rateLimitCeiling": value}, 4)
        assert exc_info.value.field == "rateLimitCeiling"
        assert exc_info.value.context.row == 4


class TestHelpers:
    def test_split_list(self):
        assert split_list("A, B; C ,, ") == ["A", "B", "C"]

    def test_parse_methods_dedups_in_order(self):
        assert parse_methods("get, POST, Get , delete") == ("GET", "POST", "DELETE")

    def test_parse_methods_blank(self):
        assert parse_methods("") == ("GET",)

    def test_domain_tags(self, weather_record):
        assert extract_domain_tags(weather_record) == ("api", "weather", "Climate")

    def test_domain_tags_dedup(self):
        record = {"publicDomains": "shop.example.com", "systemDomains": "shop.internal", "Organization": "shop"}
        assert extract_domain_tags(record) == ("shop",)


class TestMapRows:
    """Unmappable rows become failed outcomes."""

    def test_mixed(self, weather_record):
        bad = {"description": "no name"}
        configs, failures = map_rows([weather_record, bad, {"APIName": "B", "systemDomains": "b.internal"}])
        assert [c.row_number for c in configs] == [1, 3]
        assert len(failures) == 1
        failure = failures[0]
        assert failure.succeeded is False
        assert failure.failed_step == MAP_STEP
        assert failure.row_config is None
        assert failure.source_record == bad
        assert "APIName" in failure.error_message

    def test_non_finite_number_is_row_failure(self, weather_record):
        bad = dict(weather_record, APIName="Orders", rateLimitCeiling="inf")

        configs, failures = map_rows([weather_record, bad])

        assert [c.api_display_name for c in configs] == ["Weather API"]
        assert [f.failed_step for f in failures] == [MAP_STEP]
        assert "rateLimitCeiling" in failures[0].error_message
