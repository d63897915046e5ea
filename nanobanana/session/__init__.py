"""Session state package."""
from .memory import InlineImage, MediaRecord, RequestPart, SessionContext, Turn
from .registry import SessionRegistry, resolve_ratio, validate_ratio

__all__ = [
    'InlineImage',
    'MediaRecord',
    'RequestPart',
    'SessionContext',
    'SessionRegistry',
    'Turn',
    'resolve_ratio',
    'validate_ratio',
]
