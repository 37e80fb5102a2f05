from __future__ import annotations

import os
import time

from django.http import JsonResponse

from realtime.session_manager import get_session_manager


def health(request):
    """
    Load balancer health check endpoint.

    Keep it cheap and dependency-free: reads in-process counters only
    (no channel layer or Redis call).
    """

    manager = get_session_manager()
    return JsonResponse(
        {
            "status": "ok",
            "ts": int(time.time()),
            "instance_id": os.environ.get("INSTANCE_ID", "unknown-instance"),
            "sessions": len(manager.store.list_sessions(active_only=True)),
            "connections": len(manager.registry),
        }
    )
