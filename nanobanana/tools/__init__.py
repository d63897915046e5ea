"""Tool operations package."""
from .image_service import ImageSessionService
from .schemas import ToolResult

__all__ = ['ImageSessionService', 'ToolResult']
