"""Fixed app-key table for the legacy GET /analyze-image convention.

The keys are pre-shared with specific older integrations. The table is a
compatibility shim, not an access control list; adding a key means shipping a
new build.
"""
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, List, Mapping

from vision_gateway.models.schemas import (
    AnalysisType,
    ImageSource,
    ProviderPayload,
    TagDefinition,
)
from vision_gateway.utils.errors import InvalidAppKeyError


@dataclass(frozen=True)
class LegacyConfiguration:
    analysis_type: AnalysisType
    parameters: Mapping[str, Any]

    def payload_for(self, image_url: str) -> ProviderPayload:
        return ProviderPayload(source=ImageSource(uri=image_url), **self.parameters)

    def echo(self) -> List[Any]:
        """Configured prompts as returned in the legacy response's `prompts` field"""
        for field in ("tag_definitions", "rejection_questions", "prompts"):
            value = self.parameters.get(field)
            if value is not None:
                return [
                    item.model_dump() if isinstance(item, TagDefinition) else item
                    for item in value
                ]
        return []


LEGACY_APP_KEYS: Mapping[str, LegacyConfiguration] = MappingProxyType({
    "fGr3Ase": LegacyConfiguration(
        analysis_type=AnalysisType.TAGGING,
        parameters=MappingProxyType({
            "tag_definitions": (
                TagDefinition(name="prompt1", description="Tag for prompt1"),
                TagDefinition(name="prompt2", description="Tag for prompt2"),
            ),
        }),
    ),
    "88330fgvv": LegacyConfiguration(
        analysis_type=AnalysisType.MODERATION,
        parameters=MappingProxyType({
            "rejection_questions": ("is it safe?",),
        }),
    ),
    "gie3faavv3r1": LegacyConfiguration(
        analysis_type=AnalysisType.GENERAL,
        parameters=MappingProxyType({
            "prompts": ("write a very long song about this image",),
        }),
    ),
})


def resolve_legacy_key(app_key: str) -> LegacyConfiguration:
    try:
        return LEGACY_APP_KEYS[app_key]
    except KeyError:
        raise InvalidAppKeyError() from None
