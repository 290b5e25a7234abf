from enum import Enum
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from typing import Any, Dict, List, Optional, Tuple

from vision_gateway.utils.security import check_image_url

MAX_PROMPTS = 10
MAX_PROMPT_LENGTH = 1000
MAX_TAGS = 20
MAX_TAG_NAME_LENGTH = 100
MAX_TAG_DESCRIPTION_LENGTH = 500

MARKUP_CHARS = ("<", ">")


class AnalysisType(str, Enum):
    GENERAL = "ai_vision_general"
    MODERATION = "ai_vision_moderation"
    TAGGING = "ai_vision_tagging"

    @classmethod
    def values(cls) -> List[str]:
        return [member.value for member in cls]


def _parse_analysis_type(v: Any) -> Any:
    if isinstance(v, AnalysisType):
        return v
    if not isinstance(v, str) or v not in AnalysisType.values():
        raise ValueError(
            f"invalid analysis type, must be one of {', '.join(AnalysisType.values())}"
        )
    return AnalysisType(v)


class TagDefinition(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    name: str = Field(min_length=1, max_length=MAX_TAG_NAME_LENGTH)
    description: str = Field(min_length=1, max_length=MAX_TAG_DESCRIPTION_LENGTH)

    @field_validator("name", "description")
    def reject_markup(cls, v, info):
        if any(ch in v for ch in MARKUP_CHARS):
            raise ValueError(f"{info.field_name} must not contain markup characters")
        return v


class AnalysisRequest(BaseModel):
    """Normalized analysis request; wire names are those of POST /analyze"""

    model_config = ConfigDict(extra="ignore")

    image_url: str = Field(alias="imageUrl")
    analysis_type: AnalysisType
    prompts: Optional[List[str]] = Field(default=None, max_length=MAX_PROMPTS)
    tags: Optional[List[TagDefinition]] = Field(default=None, max_length=MAX_TAGS)
    multi_label: Optional[bool] = Field(default=None, strict=True)

    @field_validator("image_url")
    def validate_image_url(cls, v):
        return check_image_url(v)

    @field_validator("analysis_type", mode="before")
    def validate_analysis_type(cls, v):
        return _parse_analysis_type(v)

    @field_validator("prompts")
    def validate_prompt_length(cls, v):
        if v is None:
            return v
        for idx, prompt in enumerate(v):
            if len(prompt) > MAX_PROMPT_LENGTH:
                raise ValueError(
                    f"prompt {idx} must be at most {MAX_PROMPT_LENGTH} characters"
                )
        return v

    @model_validator(mode="after")
    def require_type_specific_field(self):
        if self.analysis_type is AnalysisType.TAGGING:
            if not self.tags:
                raise ValueError('"tags" is required for ai_vision_tagging analysis')
        elif not self.prompts:
            raise ValueError(f'"prompts" is required for {self.analysis_type.value} analysis')
        return self

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class ImageSource(BaseModel):
    model_config = ConfigDict(frozen=True)

    uri: str


class ProviderPayload(BaseModel):
    """Request body for the provider's analyze endpoint"""

    model_config = ConfigDict(frozen=True)

    source: ImageSource
    prompts: Optional[Tuple[str, ...]] = None
    rejection_questions: Optional[Tuple[str, ...]] = None
    tag_definitions: Optional[Tuple[TagDefinition, ...]] = None
    multi_label: Optional[bool] = None

    def to_wire(self) -> Dict[str, Any]:
        # Absent fields are omitted; multi_label=False is kept
        return self.model_dump(exclude_none=True, mode="json")


class HealthResponse(BaseModel):
    status: str
    timestamp: str
    version: str
    environment: str
    security: Dict[str, Any]
    dependencies: Optional[Dict[str, str]] = None


class LegacyAnalysisResponse(BaseModel):
    prompts: List[Any]
    answer: Any


class ErrorResponse(BaseModel):
    error: str
    message: str
    code: Optional[str] = None
    details: Optional[Any] = None
    path: Optional[str] = None
