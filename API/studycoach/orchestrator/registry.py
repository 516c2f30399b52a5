from collections import OrderedDict

from studycoach.core.logging import DOMAIN_SESSION, get_domain_logger
from studycoach.core.settings import settings
from studycoach.orchestrator.engine import StudySessionMachine

logger = get_domain_logger(__name__, DOMAIN_SESSION)


class SessionRegistry:
    """In-memory map of live study sessions, oldest evicted first once full."""

    def __init__(self, max_sessions: int | None = None):
        self.max_sessions = max_sessions or settings.session_registry_max
        self._sessions: OrderedDict[str, StudySessionMachine] = OrderedDict()

    def add(self, machine: StudySessionMachine) -> None:
        self._sessions[machine.session_id] = machine
        self._sessions.move_to_end(machine.session_id)
        while len(self._sessions) > self.max_sessions:
            evicted_id, _ = self._sessions.popitem(last=False)
            logger.info("Evicted study session %s (registry full)", evicted_id)

    def get(self, session_id: str) -> StudySessionMachine | None:
        return self._sessions.get(session_id)

    def remove(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)

    def clear(self) -> None:
        self._sessions.clear()

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions


registry = SessionRegistry()
