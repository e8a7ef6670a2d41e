"""In-memory registry of open zone-configuration sessions (one editor each)."""
import logging
import uuid
from typing import Dict, Optional

from zonemap.models.schemas import VendorZoneConfig
from zonemap.services.reference_store import ReferenceData
from zonemap.services.zone_workflow import ZoneWorkflow

logger = logging.getLogger(__name__)


class SessionNotFoundError(KeyError):
    pass


class SessionRegistry:
    def __init__(self):
        self._sessions: Dict[str, ZoneWorkflow] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def create(self, ref: ReferenceData, vendor_id: Optional[str] = None,
               initial: Optional[VendorZoneConfig] = None) -> str:
        if initial is not None:
            wf = ZoneWorkflow.from_vendor_config(ref.index, ref.resolver, initial, vendor_id)
        else:
            wf = ZoneWorkflow(ref.index, ref.resolver, vendor_id)
        session_id = uuid.uuid4().hex
        self._sessions[session_id] = wf
        logger.info(f"Session {session_id} opened (vendor={vendor_id})")
        return session_id

    def get(self, session_id: str) -> ZoneWorkflow:
        wf = self._sessions.get(session_id)
        if wf is None:
            raise SessionNotFoundError(session_id)
        return wf

    def delete(self, session_id: str) -> None:
        if self._sessions.pop(session_id, None) is None:
            raise SessionNotFoundError(session_id)
        logger.info(f"Session {session_id} closed")

    def clear(self) -> None:
        self._sessions.clear()


session_registry = SessionRegistry()
