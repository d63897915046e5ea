from __future__ import annotations

import pytest
from fastmcp import Client
from fastmcp.exceptions import ToolError

from nanobanana.server import create_server


@pytest.mark.asyncio
async def test_server_lists_all_tools(service) -> None:
    async with Client(create_server(service)) as client:
        tools = await client.list_tools()

    assert {tool.name for tool in tools} == set(service.tool_names)


@pytest.mark.asyncio
async def test_generate_through_mcp(service, backend) -> None:
    async with Client(create_server(service)) as client:
        await client.call_tool("set_aspect_ratio", {"aspect_ratio": "9:16", "conversation_id": "m"})
        result = await client.call_tool("gemini_generate_image", {"prompt": "a fox", "conversation_id": "m"})

    assert "Image generated successfully" in result.content[0].text
    assert backend.image_calls[0]["aspect_ratio"] == "9:16"


@pytest.mark.asyncio
async def test_failed_tool_is_reported_as_error(service) -> None:
    async with Client(create_server(service)) as client:
        with pytest.raises(ToolError, match="Aspect ratio is required"):
            await client.call_tool("gemini_generate_image", {"prompt": "a fox"})
