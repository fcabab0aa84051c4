# Results for side effects that must never fail the operation that triggered them.
from typing import Optional

from pydantic import BaseModel

from member_trust_service.app.models.audit_entry_db import AuditEntryDB


class RecordOutcome(BaseModel):
    entry: Optional[AuditEntryDB] = None
    error: Optional[str] = None

    @property
    def recorded(self) -> bool:
        return self.entry is not None
