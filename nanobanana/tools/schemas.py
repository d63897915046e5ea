"""Per-tool request models and the common tool result."""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from ..config import DEFAULT_SESSION_ID


class SetAspectRatioRequest(BaseModel):
    aspect_ratio: str = Field(description="Aspect ratio such as '16:9' or '1:1'")
    conversation_id: str = Field(
        default=DEFAULT_SESSION_ID, description="Session whose default ratio to set"
    )


class ChatRequest(BaseModel):
    message: str = Field(description="The message to send to Gemini")
    images: List[str] = Field(
        default_factory=list,
        description="Up to 10 image references: file paths, 'last' or 'history:N'",
    )
    conversation_id: str = Field(
        default=DEFAULT_SESSION_ID, description="Session ID for maintaining context"
    )
    system_prompt: Optional[str] = Field(
        default=None, description="Optional system instruction guiding the model"
    )


class GenerateImageRequest(BaseModel):
    prompt: str = Field(description="Description of the image to generate")
    aspect_ratio: Optional[str] = Field(
        default=None, description="Overrides the session's configured aspect ratio"
    )
    output_path: Optional[str] = Field(
        default=None,
        description="Where to save the image (forced to .png). Defaults to the output directory",
    )
    conversation_id: str = Field(
        default=DEFAULT_SESSION_ID, description="Session ID for image history and consistency"
    )
    use_image_history: bool = Field(
        default=False,
        description="Include the most recent session images for style/character consistency",
    )
    reference_images: List[str] = Field(
        default_factory=list, description="Reference images for style/character consistency"
    )
    enable_google_search: bool = Field(
        default=False, description="Enable Google Search for real-world reference grounding"
    )


class EditImageRequest(BaseModel):
    image_path: str = Field(
        description="Image to edit: a file path, 'last', or 'history:N' (e.g. 'history:0')"
    )
    edit_prompt: str = Field(description="Instructions for how to edit the image")
    aspect_ratio: Optional[str] = Field(
        default=None, description="Overrides the session's configured aspect ratio"
    )
    output_path: Optional[str] = Field(
        default=None,
        description="Where to save the image (forced to .png). Defaults to the output directory",
    )
    conversation_id: str = Field(
        default=DEFAULT_SESSION_ID, description="Session ID for image history"
    )
    reference_images: List[str] = Field(
        default_factory=list, description="Up to 10 additional reference images"
    )
    enable_google_search: bool = Field(
        default=False, description="Enable Google Search for real-world reference grounding"
    )


class SessionRequest(BaseModel):
    conversation_id: str = Field(description="The session ID")


class ToolResult(BaseModel):
    success: bool
    message: str
    warnings: List[str] = Field(default_factory=list)
    file_path: Optional[str] = None
    # Exception class name for failures, e.g. "NotFound"
    error_type: Optional[str] = None
    data: Optional[Dict[str, Any]] = None

    @property
    def text(self) -> str:
        """Message with one trailing line per warning."""
        lines = [self.message]
        lines.extend(f"Warning: {w}" for w in self.warnings)
        return "\n".join(lines)
