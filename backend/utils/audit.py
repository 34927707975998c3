import logging

from sqlalchemy.orm import Session

from models.log import AuditLog

logger = logging.getLogger(__name__)


# Audit rows are written after the business transaction has committed
def write_log(db: Session, *, user_id, action, resource, resource_id=None, status="SUCCESS", ip=None, meta=None):
    entry = AuditLog(
        user_id=user_id,
        action=action,
        resource=resource,
        resource_id=str(resource_id) if resource_id is not None else None,
        status=status,
        ip=ip,
        meta=meta or {},
    )
    db.add(entry)
    db.commit()
    logger.debug("audit %s %s/%s by user %s: %s", action, resource, resource_id, user_id, status)
    return entry


def client_ip(request):
    if request is None:
        return None
    # Behind the app gateway the caller is the first X-Forwarded-For hop
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None
