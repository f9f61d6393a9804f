"""
Session Manager
Creates and destroys the Platform of each connected client session.
"""

import logging
import threading
from typing import Dict, List, Optional

from rendering.registry import DepictorRegistry

from .config import PlatformSettings
from .platform import Platform

logger = logging.getLogger(__name__)


class SessionManager:
    """
    Registry of live client sessions.

    Each session gets its own Platform; the only state shared between sessions is
    the depictor registry, which is frozen when the first session is created.
    """

    def __init__(self, registry: DepictorRegistry, settings: Optional[PlatformSettings] = None):
        self.registry = registry
        self.settings = settings or PlatformSettings()
        self._platforms: Dict[str, Platform] = {}
        self._lock = threading.Lock()
        logger.info("SessionManager initialized.")

    def __len__(self) -> int:
        return len(self._platforms)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._platforms

    def create_session(self, session_id: Optional[str] = None, user_agent: Optional[str] = None) -> Platform:
        """
        Create the platform for a new client session.

        Args:
            session_id: Session identifier; generated when absent
            user_agent: Client user agent, used to negotiate capabilities

        Raises:
            ValueError: If a session with the same ID already exists
        """
        self.registry.freeze()
        platform = Platform(self.registry, session_id=session_id, settings=self.settings, user_agent=user_agent)
        with self._lock:
            if platform.session_id in self._platforms:
                raise ValueError(f"Session {platform.session_id} already exists.")
            self._platforms[platform.session_id] = platform
        logger.info(f"Created session {platform.session_id} ({len(self._platforms)} active)")
        return platform

    def get_session(self, session_id: str) -> Optional[Platform]:
        with self._lock:
            return self._platforms.get(session_id)

    def destroy_session(self, session_id: str) -> bool:
        """
        Destroy a session's platform.

        Returns:
            True if the session existed
        """
        with self._lock:
            platform = self._platforms.pop(session_id, None)
        if platform is None:
            logger.debug(f"Cannot destroy unknown session {session_id}")
            return False
        platform.destroy()
        logger.info(f"Destroyed session {session_id} ({len(self._platforms)} active)")
        return True

    def sessions(self) -> List[Platform]:
        with self._lock:
            return list(self._platforms.values())

    def shutdown(self) -> None:
        """Destroy every session."""
        for session_id in [platform.session_id for platform in self.sessions()]:
            self.destroy_session(session_id)
