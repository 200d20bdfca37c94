#!/usr/bin/env python3

# Tool definitions in MCP format
TOOLS = [
    {
        "name": "wait_for_user_input",
        "description": (
            "Call this to pause and wait for user input via a temp file. "
            "The user writes their message to the file, and this tool returns it. "
            "Use this instead of ending the conversation to save credits."
        ),
        "inputSchema": {
            "type": "object",
            "properties": {}
        }
    },
    {
        "name": "get_input_file",
        "description": "Get the path to the input file where users write their messages.",
        "inputSchema": {
            "type": "object",
            "properties": {}
        }
    }
]
