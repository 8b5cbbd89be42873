from fastapi import APIRouter, Response

from helpdesk.dependencies.auth import CurrentUser
from helpdesk.metrics import PrometheusExporter, metrics_registry

router = APIRouter(tags=["health"])


@router.get("/ping", summary="Public health probe")
async def ping() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/ping/secure", summary="Authenticated health probe")
async def secure_ping(user: CurrentUser) -> dict[str, str]:
    return {"status": "ok", "user": user.username}


@router.get("/metrics", summary="Prometheus metrics")
async def metrics() -> Response:
    exporter = PrometheusExporter(metrics_registry)
    return Response(content=exporter.build_payload(), media_type=exporter.content_type)
