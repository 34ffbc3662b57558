"""
Connection management utilities for HTTP requests.

This module provides centralized management of HTTP sessions with
connection pooling and thread safety.
"""

import logging
import threading
from typing import Optional

import requests
from requests.adapters import HTTPAdapter

from harvester import __version__
from harvester.utils.error_handling import mask_secret

logger = logging.getLogger(__name__)

MAX_POOL_CONNECTIONS = 10
MAX_POOL_MAXSIZE = 10

# Failed requests are reported to the scheduler, never retried here
MAX_RETRIES = 0

USER_AGENT = f"thread-harvester/{__version__}"


class ConnectionManager:
    """Manages HTTP sessions with connection pooling.
    
    Sessions are cached per credential so the authenticated issue source and
    the anonymous Q&A source never share headers.
    """
    
    def __init__(self, user_agent: str = USER_AGENT):
        """Initialize the connection manager.
        
        Args:
            user_agent: User-Agent header sent with every request
        """
        self.user_agent = user_agent
        self.session_pool = {}
        self.lock = threading.RLock()
        
    def get_session(self, token: Optional[str] = None, per_thread: bool = False) -> requests.Session:
        """Get or create a pooled session.
        
        Args:
            token: Optional token to associate with the session
            per_thread: Give the calling thread a session of its own, for
                callers that fetch from a thread pool
            
        Returns:
            Requests session configured for connection reuse
        """
        cache_key = token if token else "__default__"
        if per_thread:
            cache_key = (cache_key, threading.get_ident())
        
        with self.lock:
            if cache_key in self.session_pool:
                return self.session_pool[cache_key]
            
            session = self._create_session()
            self.session_pool[cache_key] = session
            
            if token:
                logger.debug(f"Created new connection pool for token {mask_secret(token)}")
            else:
                logger.debug("Created new default connection pool")
                
            return session
    
    def _create_session(self) -> requests.Session:
        """Create a requests session with a pooled adapter and no retries."""
        session = requests.Session()
        
        adapter = HTTPAdapter(
            pool_connections=MAX_POOL_CONNECTIONS,
            pool_maxsize=MAX_POOL_MAXSIZE,
            max_retries=MAX_RETRIES
        )
        session.mount("http://", adapter)
        session.mount("https://", adapter)
        session.headers["User-Agent"] = self.user_agent
        
        return session
    
    def clear_all_sessions(self):
        """Close and forget every pooled session."""
        with self.lock:
            for session in self.session_pool.values():
                try:
                    session.close()
                except Exception as e:
                    logger.warning(f"Error closing session: {e}")
            
            self.session_pool.clear()
            logger.debug("Cleared all connection pools")
