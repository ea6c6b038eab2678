"""Unit tests for the location and token CLI commands."""

import re
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from typer.testing import CliRunner

from location_api.cli.app import app
from location_api.core.security import subject_from_token
from location_api.lib.errors import GeocodingUnavailable
from location_api.lib.geocoder.base import LocationOption

runner = CliRunner()

SECRET = "test-secret-key-that-is-at-least-32-characters-long"


def _strip_ansi(text: str) -> str:
    """Remove ANSI escape sequences from text."""
    return re.sub(r"\x1b\[[0-9;]*m", "", text)


@pytest.fixture(autouse=True)
def _env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
    monkeypatch.setenv("JWT_SECRET_KEY", SECRET)
    monkeypatch.setenv("LOG_LEVEL", "WARNING")


def _gateway(**methods: AsyncMock) -> MagicMock:
    gateway = MagicMock()
    gateway.provider_name = "fake"
    for name, mock in methods.items():
        setattr(gateway, name, mock)
    return gateway


class TestParseCommand:
    """Tests for `location parse`."""

    def test_decimal(self) -> None:
        result = runner.invoke(app, ["location", "parse", "40.7128, -74.0060"])
        assert result.exit_code == 0
        assert "40.712800, -74.006000" in result.output

    def test_dms(self) -> None:
        result = runner.invoke(app, ["location", "parse", "40°42'46\"N 74°0'22\"W"])
        assert result.exit_code == 0
        assert result.output.startswith("40.71")

    def test_unparseable(self) -> None:
        result = runner.invoke(app, ["location", "parse", "downtown"])
        assert result.exit_code == 1


class TestGeneralizeCommand:
    """Tests for `location generalize`."""

    def test_district(self) -> None:
        result = runner.invoke(
            app, ["location", "generalize", "--lat", "39.9612", "--lng", "-82.9988", "--level", "district"]
        )
        output = _strip_ansi(result.output)
        assert result.exit_code == 0
        assert "Radius: 5000 m" in output
        assert "district" in output

    def test_unknown_level(self) -> None:
        result = runner.invoke(app, ["location", "generalize", "--lat", "1", "--lng", "1", "--level", "street"])
        assert result.exit_code == 1
        assert "Unknown privacy level" in result.output

    def test_out_of_range(self) -> None:
        result = runner.invoke(app, ["location", "generalize", "--lat", "91", "--lng", "0"])
        assert result.exit_code == 1


class TestBandCommand:
    """Tests for `location band`."""

    @pytest.mark.parametrize(
        ("meters", "label"),
        [("999", "<1km"), ("1000", "1-5km"), ("12000", "5-20km"), ("20001", ">20km")],
    )
    def test_bands(self, meters: str, label: str) -> None:
        result = runner.invoke(app, ["location", "band", meters])
        assert result.exit_code == 0
        assert result.output.startswith(label)

    def test_negative(self) -> None:
        assert runner.invoke(app, ["location", "band", "--", "-5"]).exit_code == 1


class TestSearchCommand:
    """Tests for `location search` and `location reverse`."""

    def test_search(self) -> None:
        option = LocationOption(display_name="Columbus, OH", latitude=39.9612, longitude=-82.9988)
        gateway = _gateway(search=AsyncMock(return_value=[option]))
        with patch("location_api.lib.geocoder.get_configured_gateway", return_value=gateway):
            result = runner.invoke(app, ["location", "search", "Columbus", "--country", "us"])

        assert result.exit_code == 0
        assert "Columbus, OH" in result.output
        gateway.search.assert_awaited_once_with("Columbus", 5, "us")

    def test_search_invalid_limit(self) -> None:
        result = runner.invoke(app, ["location", "search", "Columbus", "--max-results", "50"])
        assert result.exit_code == 1

    def test_search_provider_down(self) -> None:
        gateway = _gateway(search=AsyncMock(side_effect=GeocodingUnavailable("nominatim: timeout")))
        with patch("location_api.lib.geocoder.get_configured_gateway", return_value=gateway):
            result = runner.invoke(app, ["location", "search", "Columbus"])
        assert result.exit_code == 1

    def test_reverse_no_match(self) -> None:
        gateway = _gateway(reverse_geocode=AsyncMock(return_value=None))
        with patch("location_api.lib.geocoder.get_configured_gateway", return_value=gateway):
            result = runner.invoke(app, ["location", "reverse", "--lat", "0", "--lng", "-30"])
        assert result.exit_code == 0
        assert "No location found" in result.output

    def test_reverse_out_of_range(self) -> None:
        result = runner.invoke(app, ["location", "reverse", "--lat", "95", "--lng", "0"])
        assert result.exit_code == 1


class TestTokenCommand:
    """Tests for `token issue`."""

    def test_issue(self) -> None:
        result = runner.invoke(app, ["token", "issue", "user-9"])
        assert result.exit_code == 0
        assert subject_from_token(result.output.strip(), SECRET) == "user-9"
