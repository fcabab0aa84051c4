# Caller identity as forwarded by the authenticating gateway.
import enum
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request
from pydantic import BaseModel


class MemberRole(str, enum.Enum):
    GENERAL_MEMBER = "GENERAL_MEMBER"
    COORDINATOR = "COORDINATOR"
    OFFICER = "OFFICER"
    TEACHER = "TEACHER"
    SYSTEM_ADMIN = "SYSTEM_ADMIN"


REVIEWER_ROLES = frozenset({MemberRole.OFFICER.value, MemberRole.SYSTEM_ADMIN.value})


class CallerContext(BaseModel):
    member_id: str
    role: str = MemberRole.GENERAL_MEMBER.value
    ip_address: str = "unknown"
    user_agent: str = "unknown"

    @property
    def is_reviewer(self) -> bool:
        return self.role in REVIEWER_ROLES


async def get_caller_context(
    request: Request,
    x_member_id: Optional[str] = Header(None),
    x_member_role: Optional[str] = Header(None),
    user_agent: Optional[str] = Header(None),
) -> CallerContext:
    if not x_member_id:
        raise HTTPException(status_code=401, detail="Authentication required.")
    return CallerContext(
        member_id=x_member_id,
        role=(x_member_role or MemberRole.GENERAL_MEMBER.value).upper(),
        ip_address=request.client.host if request.client else "unknown",
        user_agent=user_agent or "unknown",
    )


async def require_reviewer(caller: CallerContext = Depends(get_caller_context)) -> CallerContext:
    if not caller.is_reviewer:
        raise HTTPException(status_code=403, detail="You are not authorized to perform this operation.")
    return caller
