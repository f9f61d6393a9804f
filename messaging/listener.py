"""
Socket.IO Listener
Bridges client Socket.IO connections to depiction sessions.
"""

import asyncio
import logging
from typing import Any, Dict

from utils.errors import IllegalState

from .codec import decode_events, encode_response

logger = logging.getLogger(__name__)

# Event names exchanged with the client
DEPICT_EVENTS = "depict_events"
DEPICTION_RESPONSE = "depiction_response"
ERROR_EVENT = "error"


def register_socket_events(sio, session_manager):
    """
    Register Socket.IO event handlers.

    Each socket connection is one client session: connecting creates its
    Platform, disconnecting destroys it.

    Args:
        sio: socketio.AsyncServer instance
        session_manager: SessionManager owning the sessions
    """
    @sio.event
    async def connect(sid, environ, auth=None):
        """
        Handle client connection.

        Args:
            sid: Session ID
            environ: WSGI/ASGI environment of the connection request
            auth: Optional authentication payload
        """
        user_agent = (environ or {}).get("HTTP_USER_AGENT")
        session_manager.create_session(session_id=sid, user_agent=user_agent)
        logger.info(f"Client connected: {sid}")

    @sio.event
    async def disconnect(sid, *args):
        """
        Handle client disconnection.

        Args:
            sid: Session ID
        """
        session_manager.destroy_session(sid)
        logger.info(f"Client disconnected: {sid}")

    @sio.on(DEPICT_EVENTS)
    async def handle_depict_events(sid, data):
        """
        Handle a batch of inbound events and answer with the resulting depiction.

        Args:
            sid: Session ID
            data: Either a list of event payloads or a mapping with an "events" list
        """
        platform = session_manager.get_session(sid)
        if platform is None:
            logger.error(f"Received events for unknown session {sid}")
            await sio.emit(ERROR_EVENT, {'message': f"Unknown session {sid}"}, room=sid)
            return

        payloads = data.get("events", []) if isinstance(data, dict) else data
        if not isinstance(payloads, list):
            logger.error(f"Invalid event batch from {sid}: {type(data).__name__}")
            await sio.emit(ERROR_EVENT, {'message': "Event batch must be a list of events"}, room=sid)
            return

        events, errors = decode_events(payloads, platform)
        loop = asyncio.get_running_loop()
        try:
            # process_request blocks on the session lock; keep it off the event loop
            response = await loop.run_in_executor(None, platform.process_request, events)
        except IllegalState as e:
            logger.error(f"Error processing events for session {sid}: {e}", exc_info=True)
            await sio.emit(ERROR_EVENT, {'message': f"Error processing events: {e}"}, room=sid)
            return

        message: Dict[str, Any] = encode_response(response, platform)
        if errors:
            message["errors"] = [str(error) for error in errors]
        await sio.emit(DEPICTION_RESPONSE, message, room=sid)

    logger.info("Socket.IO event handlers registered")
