from vision_gateway.models.schemas import (
    AnalysisRequest,
    AnalysisType,
    ImageSource,
    ProviderPayload,
    TagDefinition,
)


def build_provider_payload(request: AnalysisRequest) -> ProviderPayload:
    """Map a validated request onto the provider schema for its analysis type.

    general     -> prompts
    moderation  -> rejection_questions
    tagging     -> tag_definitions (+ multi_label when supplied)
    """
    source = ImageSource(uri=request.image_url)

    if request.analysis_type is AnalysisType.GENERAL:
        return ProviderPayload(source=source, prompts=tuple(request.prompts))

    if request.analysis_type is AnalysisType.MODERATION:
        return ProviderPayload(source=source, rejection_questions=tuple(request.prompts))

    tag_definitions = tuple(
        TagDefinition(name=tag.name, description=tag.description)
        for tag in request.tags
    )
    return ProviderPayload(
        source=source,
        tag_definitions=tag_definitions,
        multi_label=request.multi_label,
    )
