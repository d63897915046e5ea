"""MCP tool surface for the image session service."""
from typing import Annotated, Any, Dict, List, Optional

from fastmcp import FastMCP
from fastmcp.exceptions import ToolError
from pydantic import Field

from .config import DEFAULT_SESSION_ID, VALID_ASPECT_RATIOS
from .tools.image_service import ImageSessionService

SERVER_NAME = "nanobanana-mcp"

INSTRUCTIONS = f"""
Generate and edit images with Gemini while keeping per-session state.

- Every generate/edit call needs an aspect ratio: pass aspect_ratio, or set a
  session default once with set_aspect_ratio. Valid: {', '.join(VALID_ASPECT_RATIOS)}.
- Refer to earlier images with 'last' or 'history:N' (see get_image_history).
- use_image_history=true sends the 3 most recent session images for consistency.
"""

SessionId = Annotated[str, Field(description="Session ID for history and consistency")]
ImageList = Annotated[
    Optional[List[str]],
    Field(description="Image references: file paths, 'last' or 'history:N'"),
]
RatioOverride = Annotated[
    Optional[str],
    Field(description="Aspect ratio for this call; overrides the session default"),
]
OutputPath = Annotated[
    Optional[str],
    Field(description="Where to save the image (extension forced to .png)"),
]
SearchFlag = Annotated[bool, Field(description="Enable Google Search for real-world grounding")]


def _arguments(**kwargs: Any) -> Dict[str, Any]:
    """Drop unset optionals so request defaults apply."""
    return {key: value for key, value in kwargs.items() if value is not None}


def create_server(service: ImageSessionService) -> FastMCP:
    mcp = FastMCP(SERVER_NAME, instructions=INSTRUCTIONS)

    async def run(name: str, arguments: Dict[str, Any]) -> str:
        result = await service.call_tool(name, arguments)
        if not result.success:
            raise ToolError(result.text)
        return result.text

    @mcp.tool(
        name="set_aspect_ratio",
        description="Set the default aspect ratio used by image generation and editing in a session.",
    )
    async def set_aspect_ratio(
        aspect_ratio: Annotated[str, Field(description=f"One of: {', '.join(VALID_ASPECT_RATIOS)}")],
        conversation_id: SessionId = DEFAULT_SESSION_ID,
    ) -> str:
        return await run("set_aspect_ratio", _arguments(
            aspect_ratio=aspect_ratio, conversation_id=conversation_id,
        ))

    @mcp.tool(
        name="gemini_chat",
        description="Chat with Gemini. Supports multi-turn conversations and up to 10 images per message.",
    )
    async def gemini_chat(
        message: Annotated[str, Field(description="The message to send to Gemini")],
        images: ImageList = None,
        conversation_id: SessionId = DEFAULT_SESSION_ID,
        system_prompt: Annotated[
            Optional[str], Field(description="Optional system prompt to guide the model's behavior")
        ] = None,
    ) -> str:
        return await run("gemini_chat", _arguments(
            message=message,
            images=images,
            conversation_id=conversation_id,
            system_prompt=system_prompt,
        ))

    @mcp.tool(
        name="gemini_generate_image",
        description=(
            "Generate an image with Gemini. Supports session-based image consistency "
            "for keeping style/characters across generations."
        ),
    )
    async def gemini_generate_image(
        prompt: Annotated[str, Field(description="Description of the image to generate")],
        aspect_ratio: RatioOverride = None,
        output_path: OutputPath = None,
        conversation_id: SessionId = DEFAULT_SESSION_ID,
        use_image_history: Annotated[
            bool, Field(description="Include recent session images for style/character consistency")
        ] = False,
        reference_images: ImageList = None,
        enable_google_search: SearchFlag = False,
    ) -> str:
        return await run("gemini_generate_image", _arguments(
            prompt=prompt,
            aspect_ratio=aspect_ratio,
            output_path=output_path,
            conversation_id=conversation_id,
            use_image_history=use_image_history,
            reference_images=reference_images,
            enable_google_search=enable_google_search,
        ))

    @mcp.tool(
        name="gemini_edit_image",
        description=(
            "Edit an existing image. Use 'last' for the most recent session image or "
            "'history:N' to reference one by index."
        ),
    )
    async def gemini_edit_image(
        image_path: Annotated[str, Field(description="File path, 'last', or 'history:N'")],
        edit_prompt: Annotated[str, Field(description="Instructions for how to edit the image")],
        aspect_ratio: RatioOverride = None,
        output_path: OutputPath = None,
        conversation_id: SessionId = DEFAULT_SESSION_ID,
        reference_images: ImageList = None,
        enable_google_search: SearchFlag = False,
    ) -> str:
        return await run("gemini_edit_image", _arguments(
            image_path=image_path,
            edit_prompt=edit_prompt,
            aspect_ratio=aspect_ratio,
            output_path=output_path,
            conversation_id=conversation_id,
            reference_images=reference_images,
            enable_google_search=enable_google_search,
        ))

    @mcp.tool(
        name="get_image_history",
        description="List the generated/edited images of a session for later reference.",
    )
    async def get_image_history(
        conversation_id: Annotated[str, Field(description="The session ID to get image history for")],
    ) -> str:
        return await run("get_image_history", _arguments(conversation_id=conversation_id))

    @mcp.tool(
        name="clear_conversation",
        description="Clear conversation, image history and settings for a session.",
    )
    async def clear_conversation(
        conversation_id: Annotated[str, Field(description="The conversation ID to clear")],
    ) -> str:
        return await run("clear_conversation", _arguments(conversation_id=conversation_id))

    return mcp
