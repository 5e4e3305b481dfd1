"""
Command interpretation endpoint.

Endpoint: POST /api/assistant/interpret
Request:  { "command": "delete the newsletter from acme" }
Response: { "action": "delete_email", "deleteParams": { "keyword": "acme", "field": "from" } }

The response is always one of the five actions: model failures fall back
to the heuristic classifier instead of surfacing an error. Only a missing
or blank command is rejected (400).
"""
from fastapi import APIRouter
from fastapi.responses import JSONResponse

from mailassist.models.assistant import InterpretRequest
from mailassist.services.interpreter import interpret

router = APIRouter()


@router.post("/assistant/interpret")
async def interpret_command(request: InterpretRequest):
    """Classify a command into an action (+ optional delete parameters)."""
    command = (request.command or "").strip()
    if not command:
        return JSONResponse(
            status_code=400,
            content={"error": "Missing 'command' in request body"},
        )

    result = await interpret(command)
    return result.to_wire()
