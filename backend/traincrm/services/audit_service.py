"""
Audit and notification helpers shared by the domain services.

Both only add rows to the session; the caller's commit persists them
together with the change they describe.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, and_
from typing import Optional, Dict, Any, List, Tuple

from traincrm.models.audit_log import AuditLog
from traincrm.models.notification import Notification


def record_audit(
    db: AsyncSession,
    actor_id: Optional[str],
    action: str,
    target_type: str,
    target_id: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> AuditLog:
    entry = AuditLog(
        actor_id=actor_id,
        action=action,
        target_type=target_type,
        target_id=str(target_id) if target_id else None,
        details=details,
        ip_address=ip_address,
        user_agent=user_agent,
    )
    db.add(entry)
    return entry


def notify(
    db: AsyncSession,
    title: str,
    message: str,
    user_id: Optional[str] = None,
    student_id: Optional[str] = None,
    notification_type: str = "info",
    category: str = "general",
    priority: str = "normal",
) -> Notification:
    notification = Notification(
        user_id=user_id,
        student_id=student_id,
        title=title,
        message=message,
        notification_type=notification_type,
        category=category,
        priority=priority,
    )
    db.add(notification)
    return notification


async def list_audit_logs(
    db: AsyncSession,
    action: Optional[str] = None,
    target_type: Optional[str] = None,
    actor_id: Optional[str] = None,
    page: int = 1,
    page_size: int = 50,
) -> Tuple[List[AuditLog], int]:
    conditions = []
    if action:
        conditions.append(AuditLog.action == action)
    if target_type:
        conditions.append(AuditLog.target_type == target_type)
    if actor_id:
        conditions.append(AuditLog.actor_id == actor_id)

    query = select(AuditLog)
    count_query = select(func.count(AuditLog.id))
    if conditions:
        query = query.where(and_(*conditions))
        count_query = count_query.where(and_(*conditions))

    total = (await db.execute(count_query)).scalar() or 0
    query = query.order_by(AuditLog.created_at.desc()).offset((page - 1) * page_size).limit(page_size)
    result = await db.execute(query)
    return list(result.scalars().all()), total
