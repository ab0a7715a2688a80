import asyncio
import json
import uuid
from collections import OrderedDict
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, Response
from sse_starlette.sse import EventSourceResponse
from pydantic import BaseModel
from typing import Dict, Any, Optional, Tuple
from loguru import logger

from streamhub.core.config import settings
from streamhub.core.errors import (
    AuthError,
    OperationCancelled,
    RemoteError,
    StreamHubError,
    TorrentTimeoutError,
    ValidationError,
)
from streamhub.services.library import library_service
from streamhub.services.models import StreamDescriptor
from streamhub.services.playback import PlaybackSession, SourceDescriptorSurface
from streamhub.services.realdebrid import credentials, realdebrid_service
from streamhub.services.resolver import stream_resolver
from streamhub.services.search import search_service
from streamhub.utils.magnet import extract_display_name
from streamhub.utils.retry import CancelToken

router = APIRouter()

MAX_SESSIONS = 64

# session_id -> (session, cancel token); oldest evicted first
sessions: "OrderedDict[str, Tuple[PlaybackSession, CancelToken]]" = OrderedDict()

ERROR_CODES = [
    (ValidationError, -32602),
    (AuthError, -32001),
    (TorrentTimeoutError, -32002),
    (OperationCancelled, -32004),
    (RemoteError, -32003),
]

TOOLS = [
    {
        "name": "search",
        "description": "Search torrents by name",
        "inputSchema": {
            "type": "object",
            "properties": {"query": {"type": "string"}, "page": {"type": "integer"}},
            "required": ["query"]
        }
    },
    {
        "name": "check_availability",
        "description": "Check whether Real-Debrid already has a magnet cached",
        "inputSchema": {"type": "object", "properties": {"magnet": {"type": "string"}}, "required": ["magnet"]}
    },
    {
        "name": "add_magnet",
        "description": "Add a magnet link to the Real-Debrid library",
        "inputSchema": {
            "type": "object",
            "properties": {"magnet": {"type": "string"}, "title": {"type": "string"}},
            "required": ["magnet"]
        }
    },
    {
        "name": "stream",
        "description": "Resolve a magnet link into a playable stream (starts a playback session)",
        "inputSchema": {
            "type": "object",
            "properties": {"magnet": {"type": "string"}, "title": {"type": "string"}, "session_id": {"type": "string"}},
            "required": ["magnet"]
        }
    },
    {
        "name": "library",
        "description": "List downloaded torrents in the Real-Debrid library",
        "inputSchema": {"type": "object", "properties": {}}
    },
    {
        "name": "play",
        "description": "Play a file from a downloaded library torrent (starts a playback session)",
        "inputSchema": {
            "type": "object",
            "properties": {
                "torrent_id": {"type": "string"},
                "file_index": {"type": "integer"},
                "session_id": {"type": "string"}
            },
            "required": ["torrent_id"]
        }
    },
    {
        "name": "playback_error",
        "description": "Report a fatal player error; falls back from HLS to a progressive source once",
        "inputSchema": {
            "type": "object",
            "properties": {"session_id": {"type": "string"}, "detail": {"type": "string"}},
            "required": ["session_id"]
        }
    },
    {
        "name": "cancel",
        "description": "Cancel an in-flight playback session",
        "inputSchema": {"type": "object", "properties": {"session_id": {"type": "string"}}, "required": ["session_id"]}
    },
    {
        "name": "delete",
        "description": "Delete a torrent from Real-Debrid",
        "inputSchema": {"type": "object", "properties": {"torrent_id": {"type": "string"}}, "required": ["torrent_id"]}
    },
    {
        "name": "set_token",
        "description": "Save the Real-Debrid API token",
        "inputSchema": {"type": "object", "properties": {"token": {"type": "string"}}, "required": ["token"]}
    },
    {
        "name": "clear_token",
        "description": "Forget the Real-Debrid API token",
        "inputSchema": {"type": "object", "properties": {}}
    },
    {
        "name": "verify_token",
        "description": "Check the configured Real-Debrid API token",
        "inputSchema": {"type": "object", "properties": {}}
    },
]

TOOL_NAMES = {t["name"] for t in TOOLS}

# --- Models ---

class JsonRpcRequest(BaseModel):
    jsonrpc: str
    method: str
    params: Optional[Dict[str, Any]] = None
    id: Optional[Any] = None

# --- Helpers ---

def _result(req_id: Any, payload: Any) -> Dict[str, Any]:
    return {
        "jsonrpc": "2.0",
        "id": req_id,
        "result": {
            "content": [
                {"type": "text", "text": json.dumps(payload)}
            ]
        }
    }


def _error(req_id: Any, code: int, message: str) -> Dict[str, Any]:
    return {"jsonrpc": "2.0", "id": req_id, "error": {"code": code, "message": message}}


def _error_code(exc: StreamHubError) -> int:
    for exc_type, code in ERROR_CODES:
        if isinstance(exc, exc_type):
            return code
    return -32603


def _open_session(session_id: Optional[str], poster: Optional[str] = None) -> Tuple[str, PlaybackSession, CancelToken]:
    session_id = session_id or uuid.uuid4().hex
    session = PlaybackSession(stream_resolver, SourceDescriptorSurface(poster=poster))
    token = CancelToken()
    sessions[session_id] = (session, token)
    while len(sessions) > MAX_SESSIONS:
        sessions.popitem(last=False)
    return session_id, session, token


def _describe_session(session_id: str, session: PlaybackSession, title: str = "") -> Dict[str, Any]:
    return {
        "session_id": session_id,
        "title": title,
        "state": session.state.value,
        "stream": session.stream.model_dump(mode="json") if session.stream else None,
        "source": session.surface.source,
        "error": session.error_message,
    }


async def _start_playback(descriptor: StreamDescriptor, session_id: Optional[str]) -> Dict[str, Any]:
    session_id, session, token = _open_session(session_id, poster=descriptor.poster_url)
    await session.load(descriptor, cancel_token=token)
    return _describe_session(session_id, session, descriptor.title)


async def call_tool(tool_name: str, args: Dict[str, Any]) -> Any:
    if tool_name == "search":
        results = await search_service.search(args.get("query", ""), int(args.get("page") or 1))
        return [r.model_dump() for r in results]

    if tool_name == "check_availability":
        available = await realdebrid_service.check_instant_availability(args.get("magnet", ""))
        return {"available": available}

    if tool_name == "add_magnet":
        magnet = args.get("magnet", "")
        torrent_id = await realdebrid_service.submit_magnet(magnet)
        await realdebrid_service.select_files(torrent_id)
        title = args.get("title") or extract_display_name(magnet) or ""
        logger.info(f"Added '{title}' to Real-Debrid as {torrent_id}")
        return {"torrent_id": torrent_id, "title": title}

    if tool_name == "stream":
        magnet = args.get("magnet", "")
        descriptor = StreamDescriptor(
            title=args.get("title") or extract_display_name(magnet) or "",
            magnet=magnet,
        )
        return await _start_playback(descriptor, args.get("session_id"))

    if tool_name == "library":
        entries = await library_service.list_entries()
        return [e.model_dump(mode="json") for e in entries]

    if tool_name == "play":
        file_index = args.get("file_index")
        descriptor = await library_service.play(
            str(args.get("torrent_id", "")),
            int(file_index) if file_index is not None else None,
        )
        return await _start_playback(descriptor, args.get("session_id"))

    if tool_name == "playback_error":
        session_id = args.get("session_id", "")
        if session_id not in sessions:
            raise ValidationError(f"Unknown playback session: {session_id}")
        session, _ = sessions[session_id]
        await session.handle_fatal_error(args.get("detail"))
        return _describe_session(session_id, session)

    if tool_name == "cancel":
        session_id = args.get("session_id", "")
        if session_id not in sessions:
            raise ValidationError(f"Unknown playback session: {session_id}")
        _, token = sessions[session_id]
        token.cancel()
        return {"session_id": session_id, "cancelled": True}

    if tool_name == "delete":
        await library_service.delete(str(args.get("torrent_id", "")))
        return {"deleted": True}

    if tool_name == "set_token":
        credentials.replace(args.get("token", ""))
        return {"configured": True, "valid": await realdebrid_service.verify_token()}

    if tool_name == "clear_token":
        credentials.clear()
        return {"configured": False}

    if tool_name == "verify_token":
        if not credentials.configured:
            return {"configured": False, "valid": False}
        return {"configured": True, "valid": await realdebrid_service.verify_token()}

    raise ValueError(f"Unknown tool: {tool_name}")

# --- SSE Endpoint ---

@router.get("/sse")
async def sse_endpoint(request: Request):
    """
    Handshake via Server-Sent Events: tells the browser where to POST messages.
    """
    async def event_generator():
        host = request.headers.get("host", str(request.base_url).replace("http://", "").replace("https://", "").rstrip("/"))
        proto = "https" if request.headers.get("x-forwarded-proto") == "https" else request.url.scheme

        endpoint_url = f"{proto}://{host}/mcp/messages"

        logger.info(f"Client connected. Sending endpoint: {endpoint_url}")

        yield {
            "event": "endpoint",
            "data": endpoint_url
        }

        # Keep alive
        while True:
            await asyncio.sleep(20)
            yield {"comment": "ping"}

    return EventSourceResponse(event_generator())

# --- JSON-RPC Endpoint ---

@router.post("/messages")
async def handle_json_rpc(request: JsonRpcRequest):
    """
    JSON-RPC method handler.
    """
    try:
        method = request.method
        params = request.params or {}
        req_id = request.id

        logger.info(f"Method: {method} | Tool: {params.get('name', '-')}")

        if method == "initialize":
            return {
                "jsonrpc": "2.0",
                "id": req_id,
                "result": {
                    "protocolVersion": "0.1.0",
                    "capabilities": {
                        "tools": {"listChanged": True}
                    },
                    "serverInfo": {
                        "name": settings.PROJECT_NAME,
                        "version": settings.VERSION
                    }
                }
            }

        if method == "notifications/initialized":
            # Notifications don't get responses in JSON-RPC spec
            return Response(status_code=204)

        if method == "tools/list":
            return {"jsonrpc": "2.0", "id": req_id, "result": {"tools": TOOLS}}

        if method == "tools/call":
            tool_name = params.get("name")
            args = params.get("arguments") or {}
            if tool_name not in TOOL_NAMES:
                return _error(req_id, -32601, f"Unknown tool: {tool_name}")
            try:
                return _result(req_id, await call_tool(tool_name, args))
            except StreamHubError as e:
                logger.warning(f"Tool {tool_name} failed: {e}")
                return _error(req_id, _error_code(e), str(e))

        return JSONResponse(
            status_code=404,
            content={"jsonrpc": "2.0", "error": {"code": -32601, "message": "Method not found"}, "id": req_id}
        )

    except Exception as e:
        logger.exception("JSON-RPC Error")
        return JSONResponse(
            status_code=500,
            content={"jsonrpc": "2.0", "error": {"code": -32603, "message": str(e)}, "id": request.id}
        )
