"""Upstream mirror clients for remote package feeds.

This module provides the V3 feed client, the catalog leaf resolver used to
enrich license information, and the translation of feed metadata.
"""

from license_gate.upstream.base import BaseUpstreamClient
from license_gate.upstream.catalog import CatalogClient, catalog_index_url
from license_gate.upstream.http import HttpClient
from license_gate.upstream.v3 import DEFAULT_SERVICE_INDEX, V3UpstreamClient

__all__ = [
    "BaseUpstreamClient",
    "CatalogClient",
    "DEFAULT_SERVICE_INDEX",
    "HttpClient",
    "V3UpstreamClient",
    "catalog_index_url",
]
