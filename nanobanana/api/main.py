"""FastAPI application exposing the session tools over HTTP."""
import os
from typing import Any, Dict, Optional

from fastapi import Body, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from pydantic import BaseModel

from .. import __version__
from ..tools.image_service import NO_IMAGE_PRODUCED, ImageSessionService
from ..tools.schemas import ChatRequest, EditImageRequest, GenerateImageRequest, ToolResult

# error_type -> HTTP status
STATUS_CODES = {
    "InvalidArgument": 400,
    "NotFound": 404,
    "UnknownOperation": 404,
    "MissingConfiguration": 409,
    "BackendError": 502,
    NO_IMAGE_PRODUCED: 502,
}


# -------------------------------------------------------------------
# SCHEMAS
# -------------------------------------------------------------------
class AspectRatioBody(BaseModel):
    aspect_ratio: str


# -------------------------------------------------------------------
# HELPERS
# -------------------------------------------------------------------
def to_response(result: ToolResult) -> JSONResponse:
    status = 200 if result.success else STATUS_CODES.get(result.error_type or "", 500)
    return JSONResponse(status_code=status, content=result.model_dump())


def create_app(service: ImageSessionService) -> FastAPI:
    """Build the HTTP app around an already-wired service."""
    app = FastAPI(
        title="Nanobanana Image Session API",
        description="HTTP mirror of the nanobanana MCP tools",
        version=__version__,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def invalid_body(request: Request, exc: RequestValidationError):
        # Same shape and status as a tool call with malformed arguments
        return to_response(ToolResult(
            success=False,
            message=f"Error: invalid request body: {exc.errors()}",
            error_type="InvalidArgument",
        ))

    output_dir = service.writer.output_dir

    # -------------------------------------------------------------------
    # ROUTES
    # -------------------------------------------------------------------
    @app.get("/")
    async def root():
        """Root endpoint with API information."""
        return {
            "service": "Nanobanana Image Session API",
            "version": __version__,
            "tools": service.tool_names,
            "endpoints": {
                "generate": "POST /api/generate",
                "edit": "POST /api/edit",
                "chat": "POST /api/chat",
                "aspect_ratio": "PUT /api/sessions/{conversation_id}/aspect-ratio",
                "history": "GET /api/sessions/{conversation_id}/history",
                "clear": "DELETE /api/sessions/{conversation_id}",
                "tool": "POST /api/tools/{name}",
                "image": "GET /api/images/{filename}",
                "health": "GET /api/health",
            },
        }

    @app.get("/api/health")
    async def health():
        return {"status": "healthy", "service": "nanobanana"}

    @app.post("/api/generate", response_model=ToolResult)
    async def generate_image(request: GenerateImageRequest):
        return to_response(await service.call_tool("gemini_generate_image", request.model_dump()))

    @app.post("/api/edit", response_model=ToolResult)
    async def edit_image(request: EditImageRequest):
        return to_response(await service.call_tool("gemini_edit_image", request.model_dump()))

    @app.post("/api/chat", response_model=ToolResult)
    async def chat(request: ChatRequest):
        return to_response(await service.call_tool("gemini_chat", request.model_dump()))

    @app.put("/api/sessions/{conversation_id}/aspect-ratio", response_model=ToolResult)
    async def set_aspect_ratio(conversation_id: str, body: AspectRatioBody):
        return to_response(await service.call_tool(
            "set_aspect_ratio",
            {"conversation_id": conversation_id, "aspect_ratio": body.aspect_ratio},
        ))

    @app.get("/api/sessions/{conversation_id}/history", response_model=ToolResult)
    async def image_history(conversation_id: str):
        return to_response(await service.call_tool(
            "get_image_history", {"conversation_id": conversation_id}
        ))

    @app.delete("/api/sessions/{conversation_id}", response_model=ToolResult)
    async def clear_session(conversation_id: str):
        return to_response(await service.call_tool(
            "clear_conversation", {"conversation_id": conversation_id}
        ))

    @app.post("/api/tools/{name}", response_model=ToolResult)
    async def call_tool(name: str, arguments: Optional[Dict[str, Any]] = Body(default=None)):
        return to_response(await service.call_tool(name, arguments or {}))

    @app.get("/api/images/{filename}")
    async def get_image(filename: str):
        """Retrieve a saved image from the output directory."""
        path = os.path.join(output_dir, filename)

        # Security: prevent directory traversal
        root = os.path.abspath(output_dir)
        if os.path.commonpath([root, os.path.abspath(path)]) != root:
            raise HTTPException(status_code=403, detail="Invalid filename")

        if not os.path.isfile(path):
            raise HTTPException(status_code=404, detail=f"Image not found: {filename}")

        return FileResponse(path, media_type="image/png", filename=filename)

    return app
