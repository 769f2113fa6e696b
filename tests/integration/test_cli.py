"""Integration tests for the license-gate command-line interface."""

import io
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
from typer.testing import CliRunner

from license_gate.cli import app
from license_gate.models import PackageLicenseInfo, PackageMetadataRecord
from license_gate.outcome import NOT_FOUND, Ok
from license_gate.upstream import V3UpstreamClient
from license_gate.versioning import NuGetVersion

runner = CliRunner()


@pytest.fixture
def upstream(mocker) -> MagicMock:
    """Mock the upstream client created by the CLI."""
    client = MagicMock(spec=V3UpstreamClient)
    client.__aenter__.return_value = client
    client.__aexit__.return_value = None
    client.list_versions = AsyncMock(
        return_value=[NuGetVersion.parse("1.0.0"), NuGetVersion.parse("2.0.0+build")]
    )
    client.list_metadata = AsyncMock(
        return_value=[
            PackageMetadataRecord(
                id="Sample.Pkg",
                version=NuGetVersion.parse("2.0.0"),
                authors=["Jane Doe"],
                license_url="https://opensource.org/mit",
            )
        ]
    )
    client.get_license_info = AsyncMock(
        return_value=PackageLicenseInfo(
            license_url="https://opensource.org/mit",
            license_expression="MIT OR Apache-2.0",
        )
    )
    client.resolve_license_info = AsyncMock(
        return_value=Ok(PackageLicenseInfo(license_expression="AGPL-3.0-only"))
    )
    client.download_content = AsyncMock(return_value=io.BytesIO(b"PK\x03\x04package"))
    client.download_manifest = AsyncMock(return_value=io.BytesIO(b"<package />"))
    return client


@pytest.fixture
def client_factory(mocker, upstream: MagicMock) -> MagicMock:
    """Patch the CLI's client factory to return the mock upstream client."""
    return mocker.patch("license_gate.cli._client", return_value=upstream)


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    """Create a configuration file blocking SSPL."""
    path = tmp_path / "license-gate.toml"
    path.write_text(
        '[upstream]\nservice_index = "https://feed.example.org/v3/index.json"\n\n'
        '[policy]\nblocked_license_expressions = ["SSPL"]\n'
    )
    return path


def test_versions_command(client_factory: MagicMock) -> None:
    result = runner.invoke(app, ["versions", "Sample.Pkg"])

    assert result.exit_code == 0
    assert "1.0.0" in result.stdout
    assert "2.0.0+build" in result.stdout


def test_versions_command_unknown_package(
    client_factory: MagicMock, upstream: MagicMock
) -> None:
    upstream.list_versions.return_value = []

    result = runner.invoke(app, ["versions", "Missing.Pkg"])

    assert result.exit_code == 1
    assert "No versions found" in result.stdout


def test_source_option_overrides_config(
    client_factory: MagicMock, config_file: Path
) -> None:
    result = runner.invoke(
        app,
        [
            "versions",
            "Sample.Pkg",
            "--config",
            str(config_file),
            "--source",
            "https://mirror.example.org/v3/index.json",
        ],
    )

    assert result.exit_code == 0
    settings = client_factory.call_args.args[0]
    assert settings.upstream.service_index == "https://mirror.example.org/v3/index.json"
    assert settings.policy.blocked_license_expressions == ("SSPL",)


def test_source_from_environment(client_factory: MagicMock) -> None:
    result = runner.invoke(
        app,
        ["versions", "Sample.Pkg"],
        env={"LICENSE_GATE_SOURCE": "https://env.example.org/v3/index.json"},
    )

    assert result.exit_code == 0
    settings = client_factory.call_args.args[0]
    assert settings.upstream.service_index == "https://env.example.org/v3/index.json"


def test_config_file_in_working_directory(
    client_factory: MagicMock,
    config_file: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.chdir(config_file.parent)
    monkeypatch.delenv("LICENSE_GATE_CONFIG", raising=False)

    result = runner.invoke(app, ["versions", "Sample.Pkg"])

    assert result.exit_code == 0
    settings = client_factory.call_args.args[0]
    assert settings.upstream.service_index == "https://feed.example.org/v3/index.json"
    assert settings.policy.blocked_license_expressions == ("SSPL",)


def test_defaults_without_config_file(
    client_factory: MagicMock, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("LICENSE_GATE_CONFIG", raising=False)

    result = runner.invoke(app, ["versions", "Sample.Pkg"])

    assert result.exit_code == 0
    settings = client_factory.call_args.args[0]
    assert settings.upstream.service_index == "https://api.nuget.org/v3/index.json"
    assert not settings.policy.is_enabled


def test_invalid_config_file(client_factory: MagicMock, tmp_path: Path) -> None:
    path = tmp_path / "license-gate.toml"
    path.write_text("[policy\n")

    result = runner.invoke(app, ["versions", "Sample.Pkg", "--config", str(path)])

    assert result.exit_code == 1
    assert "Invalid TOML" in result.output
    client_factory.assert_not_called()


def test_metadata_command(client_factory: MagicMock) -> None:
    result = runner.invoke(app, ["metadata", "Sample.Pkg"])

    assert result.exit_code == 0
    assert "Sample.Pkg" in result.stdout
    assert "Jane Doe" in result.stdout


def test_license_command(client_factory: MagicMock, upstream: MagicMock) -> None:
    result = runner.invoke(app, ["license", "Sample.Pkg", "2.0.0"])

    assert result.exit_code == 0
    assert "https://opensource.org/mit" in result.stdout
    assert "MIT OR Apache-2.0" in result.stdout
    upstream.get_license_info.assert_awaited_once_with(
        "Sample.Pkg", NuGetVersion.parse("2.0.0")
    )


def test_license_command_without_info(
    client_factory: MagicMock, upstream: MagicMock
) -> None:
    upstream.get_license_info.return_value = None

    result = runner.invoke(app, ["license", "Sample.Pkg", "2.0.0"])

    assert result.exit_code == 1


def test_invalid_version(client_factory: MagicMock) -> None:
    result = runner.invoke(app, ["license", "Sample.Pkg", "not-a-version"])

    assert result.exit_code == 1
    assert "Invalid version" in result.output
    client_factory.assert_not_called()


class TestCheckCommand:
    """Tests for the check command."""

    def test_blocked_package(self, client_factory: MagicMock) -> None:
        result = runner.invoke(
            app, ["check", "Sample.Pkg", "2.0.0", "--block-license", "AGPL-3.0"]
        )

        assert result.exit_code == 1
        assert "Blocked:" in result.stdout

    def test_allowed_package(self, client_factory: MagicMock) -> None:
        result = runner.invoke(
            app, ["check", "Sample.Pkg", "2.0.0", "--block-url", "*gnu.org*"]
        )

        assert result.exit_code == 0
        assert "Allowed:" in result.stdout

    def test_no_block_lists(self, client_factory: MagicMock, upstream: MagicMock) -> None:
        result = runner.invoke(app, ["check", "Sample.Pkg", "2.0.0"])

        assert result.exit_code == 0
        assert "No block lists configured" in result.stdout
        upstream.resolve_license_info.assert_not_called()

    def test_cli_lists_extend_config_lists(
        self, client_factory: MagicMock, upstream: MagicMock, config_file: Path
    ) -> None:
        upstream.resolve_license_info.return_value = Ok(
            PackageLicenseInfo(license_expression="SSPL-1.0")
        )

        result = runner.invoke(
            app,
            ["check", "Sample.Pkg", "2.0.0", "-c", str(config_file), "-l", "AGPL-3.0"],
        )

        assert result.exit_code == 1
        settings = client_factory.call_args.args[0]
        assert settings.policy.blocked_license_expressions == ("SSPL", "AGPL-3.0")

    def test_unknown_license_info_is_allowed(
        self, client_factory: MagicMock, upstream: MagicMock
    ) -> None:
        upstream.resolve_license_info.return_value = NOT_FOUND

        result = runner.invoke(app, ["check", "Sample.Pkg", "2.0.0", "-u", "*"])

        assert result.exit_code == 0


class TestDownloadCommand:
    """Tests for the download command."""

    def test_download_to_output(self, client_factory: MagicMock, tmp_path: Path) -> None:
        output = tmp_path / "pkg.nupkg"

        result = runner.invoke(
            app, ["download", "Sample.Pkg", "2.0.0", "--output", str(output)]
        )

        assert result.exit_code == 0
        assert "Downloaded:" in result.stdout
        assert output.read_bytes() == b"PK\x03\x04package"

    def test_default_file_names(
        self,
        client_factory: MagicMock,
        tmp_path: Path,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        monkeypatch.chdir(tmp_path)

        package = runner.invoke(app, ["download", "Sample.Pkg", "2.0"])
        manifest = runner.invoke(app, ["download", "Sample.Pkg", "2.0", "--manifest"])

        assert package.exit_code == 0
        assert manifest.exit_code == 0
        assert (tmp_path / "sample.pkg.2.0.0.nupkg").read_bytes() == b"PK\x03\x04package"
        assert (tmp_path / "sample.pkg.nuspec").read_bytes() == b"<package />"

    def test_missing_package(
        self, client_factory: MagicMock, upstream: MagicMock, tmp_path: Path
    ) -> None:
        upstream.download_content.return_value = None
        output = tmp_path / "pkg.nupkg"

        result = runner.invoke(
            app, ["download", "Sample.Pkg", "2.0.0", "--output", str(output)]
        )

        assert result.exit_code == 1
        assert not output.exists()
