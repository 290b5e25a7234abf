from fastapi import APIRouter, Body, Depends, Query, Request
from typing import Any, Optional
import logging

from vision_gateway.analyzers.legacy_keys import resolve_legacy_key
from vision_gateway.analyzers.payload_mapper import build_provider_payload
from vision_gateway.analyzers.vision_client import CloudinaryVisionClient
from vision_gateway.models.schemas import LegacyAnalysisResponse
from vision_gateway.utils.errors import InvalidImageUrlError, MissingParametersError
from vision_gateway.utils.notifications import WebhookNotifier
from vision_gateway.utils.security import check_image_url, require_gate, require_legacy_gate
from vision_gateway.utils.validation import validate_analysis_request, validate_batch_request

logger = logging.getLogger(__name__)
router = APIRouter()


def get_vision_client(request: Request) -> CloudinaryVisionClient:
    return request.app.state.vision_client


def get_notifier(request: Request) -> WebhookNotifier:
    return request.app.state.notifier


@router.post("/analyze")
async def analyze(
    body: Any = Body(...),
    api_key: Optional[str] = Depends(require_gate),
    client: CloudinaryVisionClient = Depends(get_vision_client),
    notifier: WebhookNotifier = Depends(get_notifier),
):
    """Analyze an image; body uses snake_case field names"""
    analysis_request = validate_analysis_request(body)
    logger.info(f"Analysis request: {analysis_request.analysis_type.value}")

    payload = build_provider_payload(analysis_request)
    result = await client.analyze(payload, analysis_request.analysis_type)

    notifier.notify(result, analysis_request.to_wire())
    logger.info("Analysis completed")
    return result


@router.post("/batch-analyze")
async def batch_analyze(
    body: Any = Body(...),
    api_key: Optional[str] = Depends(require_gate),
    client: CloudinaryVisionClient = Depends(get_vision_client),
):
    """Analyze an image; body uses camelCase field names with `analysisData`"""
    analysis_request = validate_batch_request(body)
    logger.info(f"Batch analysis request: {analysis_request.analysis_type.value}")

    payload = build_provider_payload(analysis_request)
    result = await client.analyze(payload, analysis_request.analysis_type)

    logger.info("Batch analysis completed")
    return result


@router.get("/analyze-image", response_model=LegacyAnalysisResponse)
async def analyze_image_legacy(
    imageUrl: Optional[str] = Query(None),
    appKey: Optional[str] = Query(None),
    _: None = Depends(require_legacy_gate),
    client: CloudinaryVisionClient = Depends(get_vision_client),
):
    """Legacy analysis driven by a pre-shared app key"""
    if not imageUrl or not appKey:
        raise MissingParametersError("Both imageUrl and appKey are required")

    try:
        image_url = check_image_url(imageUrl)
    except ValueError as e:
        raise InvalidImageUrlError(f"Please provide a valid HTTP/HTTPS image URL: {e}")

    configuration = resolve_legacy_key(appKey)
    logger.info(f"Legacy analysis request: {configuration.analysis_type.value}")

    payload = configuration.payload_for(image_url)
    result = await client.analyze(payload, configuration.analysis_type)

    logger.info("Legacy analysis completed")
    return {"prompts": configuration.echo(), "answer": result}
