"""FastAPI adapter exposing the mirror behind the license policy.

Routes follow the NuGet V3 layout so package managers can point at the
mirror directly:

* ``GET /v3/package/{id}/index.json``: version list (not gated, no
  protected content is transmitted).
* ``GET /v3/package/{id}/{version}/{id}.{version}.nupkg``: package content.
* ``GET /v3/package/{id}/{version}/{id}.nuspec``: package manifest.
* ``GET /v3/registration/{id}/{version}.json``: registration leaf.

The last three are gated and share one denial branch.
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, BinaryIO, Callable, Optional

from fastapi import APIRouter, FastAPI, Request, Response, status
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.background import BackgroundTask

from license_gate.models import PackageMetadataRecord
from license_gate.policy import LicensePolicy, MirrorPolicyConfig
from license_gate.serving import Denied, GateResult, PackageGate, denial_response
from license_gate.upstream.base import BaseUpstreamClient
from license_gate.upstream.http import CHUNK_SIZE
from license_gate.versioning import NuGetVersion

ConfigProvider = Callable[[], MirrorPolicyConfig]


def _not_found() -> Response:
    return Response(status_code=status.HTTP_404_NOT_FOUND)


def _stream(content: BinaryIO, media_type: str) -> StreamingResponse:
    # The temporary file is closed once the body has been sent.
    return StreamingResponse(
        iter(lambda: content.read(CHUNK_SIZE), b""),
        media_type=media_type,
        background=BackgroundTask(content.close),
    )


def _registration_leaf(
    request: Request, record: PackageMetadataRecord
) -> dict[str, Any]:
    base = str(request.base_url).rstrip("/")
    lower_id = record.id.lower()
    lower_version = record.version.to_normalized_string().lower()
    return {
        "@id": f"{base}/v3/registration/{lower_id}/{lower_version}.json",
        "@type": ["Package", "http://schema.nuget.org/catalog#Permalink"],
        "listed": record.listed,
        "packageContent": (
            f"{base}/v3/package/{lower_id}/{lower_version}/"
            f"{lower_id}.{lower_version}.nupkg"
        ),
        "published": record.published.isoformat() if record.published else None,
        "registration": f"{base}/v3/registration/{lower_id}/index.json",
    }


def create_router(upstream: BaseUpstreamClient, config_provider: ConfigProvider) -> APIRouter:
    """Create the mirror routes.

    Args:
        upstream: Mirror client used for all upstream lookups.
        config_provider: Returns the block lists to enforce. Called once per
            request, so configuration reloads apply between requests.

    Returns:
        An APIRouter with the package content and registration routes.
    """
    router = APIRouter()

    def gate() -> PackageGate:
        return PackageGate(LicensePolicy(upstream, config_provider()))

    def respond(result: GateResult, on_served: Callable[[Any], Response]) -> Response:
        if isinstance(result, Denied):
            return denial_response(result.blocked)
        if result.payload is None:
            return _not_found()
        return on_served(result.payload)

    @router.get("/v3/package/{package_id}/index.json")
    async def package_versions(package_id: str) -> Response:
        versions = await upstream.list_versions(package_id)
        if not versions:
            return _not_found()
        return JSONResponse(
            {"versions": [v.to_normalized_string().lower() for v in versions]}
        )

    @router.get("/v3/package/{package_id}/{version}/{file_name}")
    async def package_file(package_id: str, version: str, file_name: str) -> Response:
        parsed = NuGetVersion.try_parse(version)
        if parsed is None:
            return _not_found()

        lower_id = package_id.lower()
        lower_version = parsed.to_normalized_string().lower()
        file_name = file_name.lower()

        if file_name == f"{lower_id}.{lower_version}.nupkg":
            result = await gate().serve(
                package_id, parsed, lambda: upstream.download_content(package_id, parsed)
            )
            return respond(result, lambda f: _stream(f, "application/octet-stream"))

        if file_name == f"{lower_id}.nuspec":
            result = await gate().serve(
                package_id, parsed, lambda: upstream.download_manifest(package_id, parsed)
            )
            return respond(result, lambda f: _stream(f, "text/xml"))

        return _not_found()

    @router.get("/v3/registration/{package_id}/{version}.json")
    async def registration_leaf(request: Request, package_id: str, version: str) -> Response:
        parsed = NuGetVersion.try_parse(version)
        if parsed is None:
            return _not_found()

        result = await gate().serve(
            package_id, parsed, lambda: upstream.get_metadata(package_id, parsed)
        )
        return respond(result, lambda record: JSONResponse(_registration_leaf(request, record)))

    return router


def create_app(
    upstream: BaseUpstreamClient,
    config_provider: ConfigProvider,
    title: Optional[str] = None,
) -> FastAPI:
    """Create a FastAPI application serving the gated mirror.

    The upstream client's HTTP sessions are closed on application shutdown.
    """
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await upstream.close()

    app = FastAPI(title=title or "license-gate", lifespan=lifespan)
    app.include_router(create_router(upstream, config_provider))
    return app
