"""Pytest configuration and fixtures."""

import copy
from typing import Any, AsyncGenerator

import pytest

from license_gate.upstream.v3 import V3UpstreamClient
from license_gate.versioning import NuGetVersion

FEED = "https://feed.example.org"
SERVICE_INDEX_URL = f"{FEED}/v3/index.json"
FLAT_CONTAINER = f"{FEED}/v3-flatcontainer"
REGISTRATIONS = f"{FEED}/v3/registration5-gz-semver2"
CATALOG_LEAF_URL = f"{FEED}/v3/catalog0/data/2024.01.02.03.04.05/sample.pkg.2.0.0.json"
CATALOG_INDEX_URL = f"{FEED}/v3/catalog0/index.json"


@pytest.fixture
def service_index() -> dict[str, Any]:
    """Return a V3 service index document."""
    return {
        "version": "3.0.0",
        "resources": [
            {"@id": f"{FLAT_CONTAINER}/", "@type": "PackageBaseAddress/3.0.0"},
            {"@id": f"{REGISTRATIONS}/", "@type": "RegistrationsBaseUrl/3.6.0"},
            {"@id": f"{FEED}/v3/registration5-semver1/", "@type": "RegistrationsBaseUrl"},
            {"@id": CATALOG_INDEX_URL, "@type": "Catalog/3.0.0"},
        ],
    }


@pytest.fixture
def catalog_entry_v1() -> dict[str, Any]:
    """Return the registration catalog entry of Sample.Pkg 1.0.0."""
    return {
        "@id": f"{FEED}/v3/catalog0/data/2023.05.06.07.08.09/sample.pkg.1.0.0.json",
        "id": "Sample.Pkg",
        "version": "1.0.0",
        "authors": "Jane Doe",
        "description": "First release.",
        "listed": False,
        "published": "1900-01-01T00:00:00+00:00",
        "licenseUrl": "https://www.gnu.org/licenses/agpl-3.0.html",
        "tags": [],
        "dependencyGroups": [],
    }


@pytest.fixture
def catalog_entry_v2() -> dict[str, Any]:
    """Return the registration catalog entry of Sample.Pkg 2.0.0."""
    return {
        "@id": CATALOG_LEAF_URL,
        "id": "Sample.Pkg",
        "version": "2.0.0",
        "authors": "Jane Doe, John Roe;\tBuild Bot",
        "description": "A sample package.",
        "language": "en-US",
        "listed": True,
        "published": "2024-01-02T03:04:05.123+00:00",
        "licenseUrl": "https://opensource.org/mit",
        "projectUrl": "https://github.com/example/sample",
        "iconUrl": "",
        "tags": ["sample  demo", "mirror"],
        "summary": "Sample summary",
        "title": "Sample Package",
        "minClientVersion": "2.12",
        "requireLicenseAcceptance": True,
        "dependencyGroups": [
            {
                "targetFramework": "net8.0",
                "dependencies": [
                    {"id": "Newtonsoft.Json", "range": "[13.0.1, )"},
                    {"id": "Serilog", "range": "[3.0.0, )"},
                ],
            },
            {"targetFramework": "netstandard2.0"},
        ],
    }


@pytest.fixture
def registration_index(
    catalog_entry_v1: dict[str, Any], catalog_entry_v2: dict[str, Any]
) -> dict[str, Any]:
    """Return a registration index with one inlined page."""
    return {
        "count": 1,
        "items": [
            {
                "@id": f"{REGISTRATIONS}/sample.pkg/index.json#page/1.0.0/2.0.0",
                "lower": "1.0.0",
                "upper": "2.0.0",
                "count": 2,
                "items": [
                    {"catalogEntry": copy.deepcopy(catalog_entry_v1)},
                    {"catalogEntry": copy.deepcopy(catalog_entry_v2)},
                ],
            }
        ],
    }


@pytest.fixture
def catalog_leaf() -> dict[str, Any]:
    """Return the catalog leaf of Sample.Pkg 2.0.0."""
    return {
        "@id": CATALOG_LEAF_URL,
        "@type": ["PackageDetails", "catalog:Permalink"],
        "id": "Sample.Pkg",
        "version": "2.0.0",
        "licenseExpression": "AGPL-3.0-only",
    }


@pytest.fixture
def sample_version() -> NuGetVersion:
    """Return the version used by most tests."""
    return NuGetVersion.parse("2.0.0")


@pytest.fixture
async def client() -> AsyncGenerator[V3UpstreamClient, None]:
    """Return a V3UpstreamClient pointed at the test feed."""
    upstream = V3UpstreamClient(service_index_url=SERVICE_INDEX_URL, timeout=5)
    yield upstream
    await upstream.close()
