import logging
from typing import Any, Dict, Mapping

import pydantic

from vision_gateway.models.schemas import AnalysisRequest, AnalysisType
from vision_gateway.utils.errors import ValidationError

logger = logging.getLogger(__name__)


def first_error_message(exc: pydantic.ValidationError) -> str:
    """Render only the first pydantic error as `field: message`"""
    error = exc.errors(include_url=False)[0]
    msg = error["msg"]
    if msg.startswith("Value error, "):
        msg = msg[len("Value error, "):]
    location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
    return f"{location}: {msg}" if location else msg


def validate_analysis_request(body: Any) -> AnalysisRequest:
    """Validate a POST /analyze body (snake_case field names)"""
    if not isinstance(body, Mapping):
        raise ValidationError("Request body must be a JSON object")
    try:
        return AnalysisRequest.model_validate(dict(body))
    except pydantic.ValidationError as e:
        message = first_error_message(e)
        logger.info(f"Rejected analysis request: {message}")
        raise ValidationError(message)


def validate_batch_request(body: Any) -> AnalysisRequest:
    """Validate a POST /batch-analyze body (camelCase field names).

    `analysisData` carries the prompts, or the tag definitions for tagging.
    """
    if not isinstance(body, Mapping):
        raise ValidationError("Request body must be a JSON object")

    analysis_data = body.get("analysisData")
    if not analysis_data:
        raise ValidationError('"analysisData" is required')
    if not isinstance(analysis_data, list):
        raise ValidationError('"analysisData" must be an array')

    normalized: Dict[str, Any] = {}
    if "imageUrl" in body:
        normalized["imageUrl"] = body["imageUrl"]
    if "analysisType" in body:
        normalized["analysis_type"] = body["analysisType"]
    if body.get("analysisType") == AnalysisType.TAGGING.value:
        normalized["tags"] = analysis_data
    else:
        normalized["prompts"] = analysis_data
    if "multiLabel" in body:
        normalized["multi_label"] = body["multiLabel"]

    try:
        return AnalysisRequest.model_validate(normalized)
    except pydantic.ValidationError as e:
        message = _batch_field_names(first_error_message(e))
        logger.info(f"Rejected batch analysis request: {message}")
        raise ValidationError(message)


_BATCH_FIELD_NAMES = (
    ("analysis_type", "analysisType"),
    ("multi_label", "multiLabel"),
    ("prompts", "analysisData"),
    ("tags", "analysisData"),
)


def _batch_field_names(message: str) -> str:
    for internal, external in _BATCH_FIELD_NAMES:
        message = message.replace(internal, external)
    return message
