from typing import Dict, List, Optional
import structlog

from intentui.domain.orchestration.policy.base_policy import DecisionPolicy
from intentui.infrastructure.config.settings import Settings
from intentui.session import UISession, create_session

logger = structlog.get_logger(__name__)


class SessionRegistry:
    """In-memory map of session id to UISession"""

    def __init__(self, settings: Settings, policy_factory=None):
        self.settings = settings
        self.policy_factory = policy_factory
        self.sessions: Dict[str, UISession] = {}

    def create(self) -> UISession:
        policy: Optional[DecisionPolicy] = self.policy_factory() if self.policy_factory else None
        session = create_session(settings=self.settings, policy=policy)
        self.sessions[session.session_id] = session
        logger.info("Session created", session_id=session.session_id)
        return session

    def get(self, session_id: str) -> Optional[UISession]:
        return self.sessions.get(session_id)

    def remove(self, session_id: str) -> bool:
        if self.sessions.pop(session_id, None) is None:
            return False
        logger.info("Session removed", session_id=session_id)
        return True

    def list_ids(self) -> List[str]:
        return list(self.sessions.keys())
