"""
REST views for realtime app.

- POST /api/sessions/: create a session (optional PIN, optional host name);
  returns the session and the host's participant id.
- GET /api/sessions/<session_id>/: full snapshot (session, participants,
  current-round votes, vote history).
- POST /api/sessions/join/: resolve an active session's PIN to its id.

Joining a session as a participant happens over the websocket, not here.
"""

from __future__ import annotations

import json
import logging

from django.http import JsonResponse
from django.views.decorators.http import require_http_methods
from pydantic import ValidationError

from .errors import NotFound, PinConflict
from .serializers import CreateSessionRequest, JoinByPinRequest
from .session_manager import get_session_manager

logger = logging.getLogger(__name__)


def _json_body(request):
    try:
        body = json.loads(request.body or b"{}")
    except json.JSONDecodeError:
        return None
    return body if isinstance(body, dict) else None


@require_http_methods(["POST"])
async def create_session(request):
    """POST /api/sessions/ - Create a session and its host participant."""
    body = _json_body(request)
    if body is None:
        return JsonResponse({"detail": "Invalid JSON"}, status=400)
    try:
        req = CreateSessionRequest(**body)
    except ValidationError:
        return JsonResponse({"detail": "Invalid session data"}, status=400)

    try:
        session, host = get_session_manager().create_session(pin=req.pin, host_name=req.host_name)
    except PinConflict as exc:
        return JsonResponse({"detail": exc.message}, status=409)

    return JsonResponse({"session": session.to_wire(), "hostId": host.id}, status=201)


@require_http_methods(["GET"])
async def session_detail(request, session_id: str):
    """GET /api/sessions/<session_id>/ - Snapshot of one session."""
    viewer_id = request.GET.get("participantId") or None
    try:
        snapshot = get_session_manager().get_snapshot(session_id, viewer_id=viewer_id)
    except NotFound as exc:
        return JsonResponse({"detail": exc.message}, status=404)
    return JsonResponse(snapshot)


@require_http_methods(["POST"])
async def join_by_pin(request):
    """POST /api/sessions/join/ - Look up an active session by PIN."""
    body = _json_body(request)
    if body is None:
        return JsonResponse({"detail": "Invalid JSON"}, status=400)
    try:
        req = JoinByPinRequest(**body)
    except ValidationError:
        return JsonResponse({"detail": "Invalid request"}, status=400)

    try:
        session_id = get_session_manager().join_by_pin(req.pin)
    except NotFound as exc:
        logger.info("Join by PIN %s refused: %s", req.pin, exc.message)
        return JsonResponse({"detail": exc.message}, status=404)
    return JsonResponse({"sessionId": session_id})
