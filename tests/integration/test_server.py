"""Integration tests for the FastAPI mirror adapter."""

import io
from datetime import UTC, datetime
from typing import Iterator
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from license_gate.models import PackageLicenseInfo, PackageMetadataRecord
from license_gate.outcome import NOT_FOUND, Ok
from license_gate.policy import MirrorPolicyConfig
from license_gate.server import create_app
from license_gate.serving import BLOCK_ERROR, BLOCK_MESSAGE_HEADER, BLOCK_REASON_HEADER
from license_gate.upstream.base import BaseUpstreamClient
from license_gate.versioning import NuGetVersion

NUPKG_PATH = "/v3/package/Sample.Pkg/2.0.0/sample.pkg.2.0.0.nupkg"
NUSPEC_PATH = "/v3/package/Sample.Pkg/2.0.0/sample.pkg.nuspec"
REGISTRATION_PATH = "/v3/registration/Sample.Pkg/2.0.0.json"

AGPL_REASON = (
    "Package Sample.Pkg 2.0.0 has blocked license expression "
    "'AGPL-3.0-only' (blocked: 'AGPL-3.0')"
)


@pytest.fixture
def upstream() -> MagicMock:
    """Return a mock upstream client for Sample.Pkg 2.0.0 under AGPL."""
    client = MagicMock(spec=BaseUpstreamClient)
    client.list_versions = AsyncMock(
        return_value=[NuGetVersion.parse("1.0.0"), NuGetVersion.parse("2.0.0-Beta")]
    )
    client.resolve_license_info = AsyncMock(
        return_value=Ok(
            PackageLicenseInfo(
                license_url="https://opensource.org/mit",
                license_expression="AGPL-3.0-only",
            )
        )
    )
    client.download_content = AsyncMock(return_value=io.BytesIO(b"PK\x03\x04package"))
    client.download_manifest = AsyncMock(return_value=io.BytesIO(b"<package />"))
    client.get_metadata = AsyncMock(
        return_value=PackageMetadataRecord(
            id="Sample.Pkg",
            version=NuGetVersion.parse("2.0.0"),
            listed=True,
            published=datetime(2024, 1, 2, 3, 4, 5, tzinfo=UTC),
        )
    )
    client.close = AsyncMock()
    return client


@pytest.fixture
def policy() -> dict[str, MirrorPolicyConfig]:
    """Return a mutable holder for the policy served to the app."""
    return {"config": MirrorPolicyConfig()}


@pytest.fixture
def http(upstream: MagicMock, policy: dict[str, MirrorPolicyConfig]) -> Iterator[TestClient]:
    """Return a TestClient for the mirror app."""
    app = create_app(upstream, lambda: policy["config"])
    with TestClient(app) as client:
        yield client


def block_agpl(policy: dict[str, MirrorPolicyConfig]) -> None:
    policy["config"] = MirrorPolicyConfig(blocked_license_expressions=("AGPL-3.0",))


class TestVersionsRoute:
    """Tests for the version list route."""

    def test_versions(self, http: TestClient, upstream: MagicMock) -> None:
        response = http.get("/v3/package/Sample.Pkg/index.json")

        assert response.status_code == 200
        assert response.json() == {"versions": ["1.0.0", "2.0.0-beta"]}
        upstream.list_versions.assert_awaited_once_with("Sample.Pkg")

    def test_versions_are_not_gated(
        self,
        http: TestClient,
        upstream: MagicMock,
        policy: dict[str, MirrorPolicyConfig],
    ) -> None:
        block_agpl(policy)

        response = http.get("/v3/package/Sample.Pkg/index.json")

        assert response.status_code == 200
        upstream.resolve_license_info.assert_not_called()

    def test_unknown_package(self, http: TestClient, upstream: MagicMock) -> None:
        upstream.list_versions.return_value = []

        response = http.get("/v3/package/Missing.Pkg/index.json")

        assert response.status_code == 404


class TestGatedRoutes:
    """Tests for the content, manifest and registration routes."""

    @pytest.mark.parametrize("path", [NUPKG_PATH, NUSPEC_PATH, REGISTRATION_PATH])
    def test_blocked_package_gets_403(
        self,
        http: TestClient,
        upstream: MagicMock,
        policy: dict[str, MirrorPolicyConfig],
        path: str,
    ) -> None:
        block_agpl(policy)

        response = http.get(path)

        assert response.status_code == 403
        assert response.headers[BLOCK_REASON_HEADER] == AGPL_REASON
        assert response.headers[BLOCK_MESSAGE_HEADER] == (
            "Package Sample.Pkg 2.0.0 is blocked by organization due to license "
            f"issue: {AGPL_REASON}"
        )
        assert response.json() == {
            "error": BLOCK_ERROR,
            "message": response.headers[BLOCK_MESSAGE_HEADER],
            "packageId": "Sample.Pkg",
            "packageVersion": "2.0.0",
            "reason": AGPL_REASON,
        }
        upstream.download_content.assert_not_called()
        upstream.download_manifest.assert_not_called()
        upstream.get_metadata.assert_not_called()

    def test_allowed_content(self, http: TestClient, upstream: MagicMock) -> None:
        response = http.get(NUPKG_PATH)

        assert response.status_code == 200
        assert response.content == b"PK\x03\x04package"
        assert response.headers["content-type"] == "application/octet-stream"
        assert upstream.download_content.return_value.closed

    def test_allowed_manifest(self, http: TestClient) -> None:
        response = http.get(NUSPEC_PATH)

        assert response.status_code == 200
        assert response.content == b"<package />"

    def test_allowed_registration_leaf(self, http: TestClient) -> None:
        response = http.get(REGISTRATION_PATH)

        assert response.status_code == 200
        leaf = response.json()
        assert leaf["listed"] is True
        assert leaf["published"] == "2024-01-02T03:04:05+00:00"
        assert leaf["packageContent"].endswith(
            "/v3/package/sample.pkg/2.0.0/sample.pkg.2.0.0.nupkg"
        )
        assert leaf["@id"].endswith("/v3/registration/sample.pkg/2.0.0.json")

    def test_non_matching_policy_serves(
        self,
        http: TestClient,
        policy: dict[str, MirrorPolicyConfig],
    ) -> None:
        policy["config"] = MirrorPolicyConfig(blocked_license_url_patterns=("*gnu.org*",))

        assert http.get(NUPKG_PATH).status_code == 200

    def test_policy_changes_apply_between_requests(
        self,
        http: TestClient,
        policy: dict[str, MirrorPolicyConfig],
    ) -> None:
        assert http.get(REGISTRATION_PATH).status_code == 200

        block_agpl(policy)

        assert http.get(REGISTRATION_PATH).status_code == 403

    def test_unknown_license_info_is_allowed(
        self,
        http: TestClient,
        upstream: MagicMock,
        policy: dict[str, MirrorPolicyConfig],
    ) -> None:
        block_agpl(policy)
        upstream.resolve_license_info.return_value = NOT_FOUND

        assert http.get(REGISTRATION_PATH).status_code == 200

    @pytest.mark.parametrize(
        ("attribute", "path"),
        [
            ("download_content", NUPKG_PATH),
            ("download_manifest", NUSPEC_PATH),
            ("get_metadata", REGISTRATION_PATH),
        ],
    )
    def test_missing_payload_gets_404(
        self, http: TestClient, upstream: MagicMock, attribute: str, path: str
    ) -> None:
        getattr(upstream, attribute).return_value = None

        assert http.get(path).status_code == 404

    @pytest.mark.parametrize(
        "path",
        [
            "/v3/package/Sample.Pkg/not-a-version/sample.pkg.nuspec",
            "/v3/package/Sample.Pkg/2.0.0/other.pkg.2.0.0.nupkg",
            "/v3/package/Sample.Pkg/2.0.0/readme.md",
            "/v3/registration/Sample.Pkg/not-a-version.json",
        ],
    )
    def test_bad_paths_get_404(self, http: TestClient, upstream: MagicMock, path: str) -> None:
        assert http.get(path).status_code == 404
        upstream.resolve_license_info.assert_not_called()


def test_shutdown_closes_upstream(upstream: MagicMock) -> None:
    app = create_app(upstream, MirrorPolicyConfig)

    with TestClient(app):
        upstream.close.assert_not_called()

    upstream.close.assert_awaited_once()
