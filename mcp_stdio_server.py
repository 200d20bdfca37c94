#!/usr/bin/env python3
"""
User Input MCP Server - wait for a human via a watched file

This is a Model Context Protocol (MCP) server that lets an assistant pause and
wait for the user instead of ending its turn. The assistant calls
`wait_for_user_input`; the server writes the conversation so far into a
markdown file, opens it in the editor, and returns whatever the user saves
there once they end it with //SEND.

Tools:
- wait_for_user_input: block until the user submits a message
- get_input_file: path of the file the user writes into

Usage:
- Stdio mode: python mcp_stdio_server.py
- HTTP mode: python mcp_stdio_server.py --http

Stdout carries JSON-RPC responses only; all logging goes to stderr.
"""

# Standard libraries
import os
import sys
import json
import codecs
import asyncio
import logging
import tempfile
from datetime import datetime
from functools import partial
from pathlib import Path
from typing import Any, Dict, List, Optional, TextIO

from dotenv import load_dotenv

# Web framework for HTTP mode
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response
import uvicorn

from editor import DEFAULT_EDITORS
from mcp_tools import TOOLS
from wait_engine import DEFAULT_DEBOUNCE_MS, SessionContext, WaitEngine, watch_input_file

load_dotenv()

# ============================================================================
# CONFIGURATION & CONSTANTS
# ============================================================================

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

# Set up logging to stderr so it never mixes with protocol output
logging.basicConfig(level=LOG_LEVEL, stream=sys.stderr)
logger = logging.getLogger(__name__)

SERVER_NAME = "llm-response-mcp"
SERVER_VERSION = "1.0.0"
PROTOCOL_VERSION = "2024-11-05"

# Watched file, fixed for the lifetime of the process
INPUT_FILE = Path(
    os.environ.get("USER_INPUT_FILE")
    or os.path.join(tempfile.gettempdir(), "windsurf_user_input.md")
)

# Comma separated; an empty value disables opening an editor
_editors_env = os.environ.get("USER_INPUT_EDITORS")
EDITORS = (
    DEFAULT_EDITORS if _editors_env is None
    else tuple(name.strip() for name in _editors_env.split(",") if name.strip())
)

DEBOUNCE_MS = int(os.environ.get("USER_INPUT_DEBOUNCE_MS", DEFAULT_DEBOUNCE_MS))

HOST = os.environ.get("HOST", "127.0.0.1")
PORT = int(os.environ.get("PORT", 8080))

READ_CHUNK_SIZE = 65536

# JSON-RPC error codes
PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603

# ============================================================================
# JSON-RPC HELPERS
# ============================================================================

def jsonrpc_result(message_id: Any, result: Dict[str, Any]) -> Dict[str, Any]:
    return {"jsonrpc": "2.0", "id": message_id, "result": result}


def jsonrpc_error(message_id: Any, code: int, message: str) -> Dict[str, Any]:
    return {
        "jsonrpc": "2.0",
        "id": message_id,
        "error": {
            "code": code,
            "message": message
        }
    }

# ============================================================================
# MCP PROTOCOL
# ============================================================================

class MCPServer:
    def __init__(self, engine: WaitEngine):
        self.engine = engine
        self.tools = TOOLS

    async def handle_line(self, line: str) -> Optional[str]:
        """Handle one line of input; returns the response line or None."""
        try:
            message = json.loads(line)
        except (json.JSONDecodeError, RecursionError) as e:
            logger.error(f"Invalid JSON received: {repr(line[:100])} - {e}")
            return json.dumps(jsonrpc_error(None, PARSE_ERROR, f"Parse error: {e}"))

        response = await self.handle_message(message)
        if response is None:
            return None
        return json.dumps(response)

    async def handle_message(self, message: Any) -> Optional[Dict[str, Any]]:
        """Handle MCP protocol messages - used by both stdio and HTTP modes."""
        if not isinstance(message, dict):
            logger.error(f"Invalid request, expected a JSON object: {repr(message)[:100]}")
            return jsonrpc_error(None, INVALID_REQUEST, "Invalid Request")

        method = message.get("method")
        message_id = message.get("id")  # keep None for notifications

        try:
            logger.info(f"Handling method: {method} (id: {message_id})")

            # Notifications don't get responses
            if method == "notifications/initialized" or (
                message_id is None and isinstance(method, str) and method.startswith("notifications/")
            ):
                logger.info(f"Notification received for {method}, not sending response")
                return None

            if method == "initialize":
                return jsonrpc_result(message_id, {
                    "protocolVersion": PROTOCOL_VERSION,
                    "capabilities": {
                        "tools": {}
                    },
                    "serverInfo": {
                        "name": SERVER_NAME,
                        "version": SERVER_VERSION
                    }
                })

            elif method == "tools/list":
                return jsonrpc_result(message_id, {"tools": self.tools})

            elif method == "ping":
                return jsonrpc_result(message_id, {})

            elif method == "resources/list":
                return jsonrpc_result(message_id, {"resources": []})

            elif method == "prompts/list":
                return jsonrpc_result(message_id, {"prompts": []})

            elif method == "tools/call":
                return await self._handle_tools_call(message_id, message.get("params"))

            return jsonrpc_error(message_id, METHOD_NOT_FOUND, "Method not found")

        except Exception as e:
            logger.error(f"Error handling message: {e}")
            # Don't respond to notifications even on error
            if message_id is None:
                return None
            return jsonrpc_error(message_id, INTERNAL_ERROR, f"Internal error: {e}")

    async def _handle_tools_call(self, message_id: Any, params: Any) -> Dict[str, Any]:
        if params is None:
            params = {}
        if not isinstance(params, dict):
            return jsonrpc_error(message_id, INVALID_PARAMS, "Invalid params: expected an object")

        tool_name = params.get("name")
        arguments = params.get("arguments") or {}
        if not isinstance(arguments, dict):
            return jsonrpc_error(message_id, INVALID_PARAMS, "Invalid params: arguments must be an object")

        logger.info(f"Calling tool: {tool_name} with args: {arguments}")
        result = await self.call_tool(tool_name, arguments)

        return jsonrpc_result(message_id, {
            "content": [
                {
                    "type": "text",
                    "text": json.dumps(result, indent=2, ensure_ascii=False)
                }
            ]
        })

    async def call_tool(self, tool_name: Any, arguments: Dict[str, Any]) -> Dict[str, Any]:
        # Neither tool takes arguments; they are accepted and ignored
        if tool_name == "wait_for_user_input":
            return await self.engine.wait_for_user_input()
        elif tool_name == "get_input_file":
            return self.engine.get_input_file()
        return {"status": "error", "message": f"Unknown tool: {tool_name}"}

# ============================================================================
# STDIO MODE
# ============================================================================

class LineBuffer:
    """Reassemble newline-delimited lines from arbitrary byte chunks."""

    def __init__(self, encoding: str = "utf-8"):
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._pending = ""

    def feed(self, chunk: bytes) -> List[str]:
        self._pending += self._decoder.decode(chunk)
        *lines, self._pending = self._pending.split("\n")
        return [line.strip() for line in lines if line.strip()]

    def flush(self) -> List[str]:
        """Return whatever unterminated line is left at EOF."""
        rest = (self._pending + self._decoder.decode(b"", final=True)).strip()
        self._pending = ""
        return [rest] if rest else []


class _ThreadedStdinReader:
    # Used when stdin is a regular file, which asyncio can't attach a pipe to
    async def read(self, n: int) -> bytes:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, sys.stdin.buffer.read1, n)


async def open_stdin_reader():
    loop = asyncio.get_running_loop()
    reader = asyncio.StreamReader()
    try:
        await loop.connect_read_pipe(lambda: asyncio.StreamReaderProtocol(reader), sys.stdin)
    except (ValueError, OSError, NotImplementedError) as e:
        logger.info(f"stdin is not a pipe ({e}), reading it from a worker thread")
        return _ThreadedStdinReader()
    return reader


async def _serve_line(mcp_server: MCPServer, line: str, output: TextIO) -> None:
    try:
        response = await mcp_server.handle_line(line)
    except Exception as e:
        logger.error(f"Error processing message: {e}")
        return
    # Only send response if not None (not a notification)
    if response is not None:
        print(response, file=output, flush=True)


async def stdio_main(mcp_server: MCPServer, reader=None, output: Optional[TextIO] = None):
    """Main loop for stdio transport: one request line in, one response line out."""
    logger.info("MCP Server starting in stdio mode...")
    if reader is None:
        reader = await open_stdin_reader()
    if output is None:
        output = sys.stdout

    buffer = LineBuffer()
    while True:
        chunk = await reader.read(READ_CHUNK_SIZE)
        if not chunk:
            break
        for line in buffer.feed(chunk):
            await _serve_line(mcp_server, line, output)

    for line in buffer.flush():
        await _serve_line(mcp_server, line, output)

    logger.info("MCP Server shutting down...")

# ============================================================================
# HTTP MODE
# ============================================================================

def create_http_app(mcp_server: MCPServer) -> FastAPI:
    """Expose the same MCPServer over HTTP, one JSON-RPC message per POST."""
    app = FastAPI(title="User Input MCP Server", version=SERVER_VERSION)

    async def dispatch(request: Request) -> Response:
        try:
            message = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.error(f"Invalid JSON received over HTTP: {e}")
            return JSONResponse(jsonrpc_error(None, PARSE_ERROR, f"Parse error: {e}"))

        response = await mcp_server.handle_message(message)
        if response is None:
            return Response(status_code=204)
        return JSONResponse(response)

    @app.post("/message")
    async def handle_mcp_message(request: Request):
        """Handle MCP protocol messages over HTTP."""
        return await dispatch(request)

    @app.post("/mcp")
    async def handle_mcp_endpoint(request: Request):
        return await dispatch(request)

    @app.get("/health")
    async def health_check():
        return {
            "status": "healthy",
            "timestamp": datetime.now().isoformat(),
            "wait_state": mcp_server.engine.state.value,
        }

    @app.get("/")
    async def root():
        return {
            "message": "User Input MCP Server",
            "tools": len(mcp_server.tools),
            "input_file": str(mcp_server.engine.context.input_file),
        }

    return app

# ============================================================================
# MAIN APPLICATION
# ============================================================================

def build_server() -> MCPServer:
    """Create the single session context, engine and dispatcher for this process."""
    context = SessionContext(input_file=INPUT_FILE)
    engine = WaitEngine(
        context,
        watch=partial(watch_input_file, debounce_ms=DEBOUNCE_MS),
        editors=EDITORS,
    )
    return MCPServer(engine)


def main():
    mcp_server = build_server()
    logger.info(f"LLM Response MCP Server started (input file: {INPUT_FILE})")

    if "--http" in sys.argv:
        logger.info(f"🚀 MCP Server starting in HTTP mode on {HOST}:{PORT}")
        uvicorn.run(create_http_app(mcp_server), host=HOST, port=PORT)
    else:
        logger.info("🚀 MCP Server starting in stdio mode")
        try:
            asyncio.run(stdio_main(mcp_server))
        except KeyboardInterrupt:
            logger.info("MCP Server shutting down...")


if __name__ == "__main__":
    main()
