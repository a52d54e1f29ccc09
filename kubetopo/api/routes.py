"""REST routes mounted under ``/api/v1``."""

from __future__ import annotations

from fastapi import APIRouter, Request

from kubetopo.api.schemas import HealthResponse, ImpactQuery, ImpactResponse, TrafficFlowResponse, TrafficQuery
from kubetopo.impact.analyzer import analyze_impact
from kubetopo.models.impact import ImpactRequest
from kubetopo.models.traffic import TrafficFlowRequest
from kubetopo.traffic.analyzer import analyze_traffic_flow

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    from kubetopo import __version__

    return HealthResponse(version=__version__)


@router.post("/traffic", response_model=TrafficFlowResponse)
async def traffic(query: TrafficQuery, request: Request) -> TrafficFlowResponse:
    result = await analyze_traffic_flow(
        request.app.state.cluster,
        TrafficFlowRequest(**query.model_dump()),
        request.app.state.config,
    )
    return TrafficFlowResponse.model_validate(result)


@router.post("/impact", response_model=ImpactResponse)
async def impact(query: ImpactQuery, request: Request) -> ImpactResponse:
    result = await analyze_impact(
        request.app.state.cluster,
        ImpactRequest(**query.model_dump()),
        request.app.state.config,
    )
    return ImpactResponse.model_validate(result)
