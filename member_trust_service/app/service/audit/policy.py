# Which audited actions need a second, independent approval.
from typing import Any, FrozenSet, Mapping, NamedTuple, Optional, Tuple

from member_trust_service.app.models.audit_entry_db import AuditAction

MEMBER_RESOURCE_TYPES: FrozenSet[str] = frozenset({"USER", "MEMBER"})


class ApprovalRule(NamedTuple):
    action: AuditAction
    resource_types: Optional[FrozenSet[str]] = None # None matches any resource type
    context_flag: Optional[str] = None # Context key that must be truthy for the rule to apply

    def matches(self, action: AuditAction, resource_type: str, context: Mapping[str, Any]) -> bool:
        if action != self.action:
            return False
        if self.resource_types is not None and resource_type.upper() not in self.resource_types:
            return False
        if self.context_flag is not None and not context.get(self.context_flag):
            return False
        return True


APPROVAL_POLICY: Tuple[ApprovalRule, ...] = (
    ApprovalRule(AuditAction.EXPORT),
    ApprovalRule(AuditAction.DELETE, MEMBER_RESOURCE_TYPES),
    ApprovalRule(AuditAction.SEARCH, MEMBER_RESOURCE_TYPES, context_flag="all_cohorts"),
)


def requires_approval(action: AuditAction, resource_type: str, context: Optional[Mapping[str, Any]] = None) -> bool:
    action = AuditAction(action)
    return any(rule.matches(action, resource_type or "", context or {}) for rule in APPROVAL_POLICY)
