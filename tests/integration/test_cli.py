"""Integration tests for the command line interface."""

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from prerender import __version__
from prerender.cli.main import cli, request_from_url
from prerender.config.models import PrerenderConfig
from prerender.renderer.engine import BrowserEngine
from prerender.service.service import PrerenderService
from tests.helpers.fakes import FakeEngine, make_service


@pytest.fixture
def runner() -> CliRunner:
    """Click test runner."""
    return CliRunner()


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    """YAML configuration pointing at a temporary database."""
    path = tmp_path / "prerender.yaml"
    path.write_text(
        "environment: test\n"
        "database:\n"
        f"  path: {tmp_path / 'snapshots.sqlite'}\n"
        "cache_max_age_days: 2\n"
    )
    return path


class TestValidateConfig:
    """Tests for the validate-config command."""

    @pytest.mark.integration
    def test_valid_config(self, runner: CliRunner, config_file: Path) -> None:
        """Test a valid file is summarized with its checksum."""
        result = runner.invoke(cli, ["validate-config", "--config", str(config_file)])

        assert result.exit_code == 0, result.output
        assert "Configuration is valid!" in result.output
        assert "Cache max age: 2.0 days" in result.output
        assert "Interception: blacklist" in result.output
        assert "Checksum:" in result.output

    @pytest.mark.integration
    def test_invalid_config_shows_hints(self, runner: CliRunner, tmp_path: Path) -> None:
        """Test validation errors are listed with hints and exit 1."""
        path = tmp_path / "bad.yaml"
        path.write_text(
            f"database:\n  path: {tmp_path / 'db.sqlite'}\ntimeout_ms: 0\n"
        )

        result = runner.invoke(cli, ["validate-config", "--config", str(path)])

        assert result.exit_code == 1
        assert "Configuration validation failed" in result.output
        assert "timeout_ms" in result.output
        assert "Hint:" in result.output

    @pytest.mark.integration
    def test_bad_environment_value_shows_hints(
        self, runner: CliRunner, config_file: Path
    ) -> None:
        """Test a mistyped PRERENDER_* variable is reported, not raised."""
        result = runner.invoke(
            cli,
            ["validate-config", "--config", str(config_file)],
            env={"PRERENDER_TIMEOUT_MS": "abc"},
        )

        assert result.exit_code == 1
        assert result.exception is None or isinstance(result.exception, SystemExit)
        assert "Invalid configuration in environment" in result.output
        assert "timeout_ms" in result.output
        assert "whole number" in result.output

    @pytest.mark.integration
    def test_missing_file_is_rejected_by_click(
        self, runner: CliRunner, tmp_path: Path
    ) -> None:
        """Test a non-existent config path is a usage error."""
        result = runner.invoke(
            cli, ["validate-config", "--config", str(tmp_path / "absent.yaml")]
        )
        assert result.exit_code == 2


class TestCheck:
    """Tests for the check command."""

    @pytest.mark.integration
    def test_bot_request_is_prerendered(
        self, runner: CliRunner, config_file: Path
    ) -> None:
        """Test an eligible request prints its cache key and exits 0."""
        result = runner.invoke(
            cli,
            [
                "check",
                "--config",
                str(config_file),
                "--url",
                "https://example.com/list?t3&t2=b&utm_source=x&t1=a",
                "--user-agent",
                "Googlebot",
            ],
        )

        assert result.exit_code == 0, result.output
        assert "Cache key: https://example.com/list?t1=a&t2=b&t3" in result.output
        assert "Decision: prerender" in result.output

    @pytest.mark.integration
    def test_browser_request_passes_through(
        self, runner: CliRunner, config_file: Path
    ) -> None:
        """Test an ineligible request prints the reason and exits 1."""
        result = runner.invoke(
            cli,
            ["check", "--config", str(config_file), "--url", "http://example.com/"],
        )

        assert result.exit_code == 1
        assert "Decision: pass through (no-user-agent)" in result.output


class TestDbStats:
    """Tests for the db-stats command."""

    @pytest.mark.integration
    def test_json_output(
        self, runner: CliRunner, config_file: Path, tmp_path: Path
    ) -> None:
        """Test statistics of an empty database as JSON."""
        result = runner.invoke(cli, ["db-stats", "--config", str(config_file), "--json"])

        assert result.exit_code == 0, result.output
        payload = json.loads(result.stdout)
        assert payload["database"] == str(tmp_path / "snapshots.sqlite")
        assert payload["schema_version"] == 1
        assert payload["snapshots"]["snapshots"] == 0

    @pytest.mark.integration
    def test_text_output(self, runner: CliRunner, config_file: Path) -> None:
        """Test the human-readable report."""
        result = runner.invoke(cli, ["db-stats", "--config", str(config_file)])

        assert result.exit_code == 0, result.output
        assert "Snapshot Database Statistics" in result.output
        assert "snapshots: 0" in result.output


class _FakeEngineService(PrerenderService):
    """Service whose default build renders through a fake engine."""

    @classmethod
    def from_config(
        cls,
        config: PrerenderConfig,
        engine: BrowserEngine | None = None,
        configure_logs: bool = True,
        json_logs: bool = True,
    ) -> PrerenderService:
        return make_service(config, engine=FakeEngine())


class TestRender:
    """Tests for the render command."""

    @pytest.fixture(autouse=True)
    def fake_engine(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Render through a fake browser engine."""
        monkeypatch.setattr("prerender.cli.main.PrerenderService", _FakeEngineService)

    @pytest.mark.integration
    def test_render_stores_snapshot(
        self, runner: CliRunner, config_file: Path, tmp_path: Path
    ) -> None:
        """Test a render reports the status, stores the page and writes the body."""
        output = tmp_path / "page.html"

        result = runner.invoke(
            cli,
            [
                "render",
                "https://example.com/",
                "--config",
                str(config_file),
                "--output",
                str(output),
            ],
        )

        assert result.exit_code == 0, result.output
        assert "Status: 200" in result.output
        assert "Stored: yes" in result.output
        assert "Rendered by JavaScript" in output.read_text(encoding="utf-8")
        assert "app.js" not in output.read_text(encoding="utf-8")

    @pytest.mark.integration
    def test_render_without_persist(self, runner: CliRunner, config_file: Path) -> None:
        """Test --no-persist leaves the database untouched."""
        result = runner.invoke(
            cli,
            [
                "render",
                "https://example.com/",
                "--config",
                str(config_file),
                "--no-persist",
            ],
        )

        assert result.exit_code == 0, result.output
        assert "Stored: no" in result.output

        stats = runner.invoke(cli, ["db-stats", "--config", str(config_file), "--json"])
        assert json.loads(stats.stdout)["snapshots"]["snapshots"] == 0


class TestCli:
    """Tests for the command group and helpers."""

    @pytest.mark.integration
    def test_version(self, runner: CliRunner) -> None:
        """Test --version prints the package version."""
        result = runner.invoke(cli, ["--version"])
        assert __version__ in result.output

    @pytest.mark.unit
    def test_request_from_url(self) -> None:
        """Test a URL becomes the request a crawler would send."""
        request = request_from_url("https://example.com:8443/a?b=1", "Googlebot")

        assert request.url == "/a?b=1"
        assert request.header("host") == "example.com:8443"
        assert request.user_agent == "Googlebot"
        assert request.local_port == 8443
        assert request.encrypted

    @pytest.mark.unit
    def test_request_from_url_without_user_agent(self) -> None:
        """Test an empty user agent leaves the header out."""
        request = request_from_url("http://example.com", "")

        assert request.url == "/"
        assert request.header("user-agent") == ""
