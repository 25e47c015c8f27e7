from fastapi import FastAPI, HTTPException, Header
from typing import Optional
from config import settings
from services.database import DatabaseService
from services.notification_service import NotificationService
from services.follow_service import FollowService
from services.connection_service import ConnectionService
from processors.mention_resolver import MentionResolver
from schedulers.notification_cleanup import run_notification_cleanup, start_scheduler, stop_scheduler
from models.results import ErrorCode, MutationResult
from utils.session import SessionContext
import logging

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL, logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Fundspace Social Core",
    version="0.1.0",
    description="Follow graph, connection requests, notifications and mention suggestions"
)

# Shared services
db = DatabaseService()
notification_service = NotificationService(db)
follow_service = FollowService(db, notifications=notification_service)
connection_service = ConnectionService(
    db, notifications=notification_service, follows=follow_service
)
scheduler = None  # Set on startup when ENABLE_SCHEDULER is on

ERROR_STATUS = {
    ErrorCode.MISSING_IDENTIFIER: 400,
    ErrorCode.SELF_FOLLOW: 400,
    ErrorCode.SELF_CONNECTION: 400,
    ErrorCode.ALREADY_FOLLOWING: 409,
    ErrorCode.ALREADY_CONNECTED: 409,
    ErrorCode.REQUEST_PENDING: 409,
    ErrorCode.REQUEST_NOT_FOUND: 404,
    ErrorCode.NOT_PERMITTED: 403,
    ErrorCode.STORE_ERROR: 500,
}


async def require_session(user_id: Optional[str]) -> SessionContext:
    """Session for the X-User-Id header; 401 if there is no such member"""
    session = await SessionContext.load(db, user_id)
    if not session.is_authenticated:
        raise HTTPException(status_code=401, detail="Unknown or missing user")
    return session


def respond(result: MutationResult) -> dict:
    """Turn a failed MutationResult into an HTTP error"""
    if not result.success:
        status_code = ERROR_STATUS.get(result.code, 500)
        raise HTTPException(status_code=status_code, detail=result.error or "Unknown error")
    return {"status": "success"}


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "environment": settings.ENVIRONMENT,
        "service": "Fundspace Social Core"
    }


# Follow Endpoints

@app.post("/follows/{user_id}")
async def follow(user_id: str, x_user_id: Optional[str] = Header(None)):
    """Follow user_id as the current member"""
    session = await require_session(x_user_id)
    logger.info(f"Follow request: {session.user_id} -> {user_id}")
    return respond(await follow_service.follow_user(session.user_id, user_id))


@app.delete("/follows/{user_id}")
async def unfollow(user_id: str, x_user_id: Optional[str] = Header(None)):
    """Unfollow user_id. Succeeds when not following."""
    session = await require_session(x_user_id)
    logger.info(f"Unfollow request: {session.user_id} -> {user_id}")
    return respond(await follow_service.unfollow_user(session.user_id, user_id))


@app.get("/follows/{user_id}/status")
async def follow_status(user_id: str, x_user_id: Optional[str] = Header(None)):
    session = await require_session(x_user_id)
    status = await follow_service.check_follow_status(session.user_id, user_id)
    return status.model_dump()


@app.get("/users/{user_id}/follow-stats")
async def follow_stats(user_id: str):
    """Follower and following counts (public)"""
    stats = await follow_service.get_follow_stats(user_id)
    return stats.model_dump()


@app.get("/users/{user_id}/mutual-follows")
async def mutual_follows(user_id: str, x_user_id: Optional[str] = Header(None)):
    session = await require_session(x_user_id)
    mutual = await follow_service.get_mutual_follow_count(session.user_id, user_id)
    return mutual.model_dump()


# Connection Endpoints

@app.get("/connections")
async def list_connections(limit: Optional[int] = None, x_user_id: Optional[str] = Header(None)):
    session = await require_session(x_user_id)
    connections = await connection_service.get_user_connections(session.user_id, limit)
    return {"connections": [c.model_dump(mode="json") for c in connections]}


@app.get("/connections/pending")
async def list_pending_requests(x_user_id: Optional[str] = Header(None)):
    session = await require_session(x_user_id)
    requests = await connection_service.get_pending_requests(session.user_id)
    return {"requests": [r.model_dump(mode="json") for r in requests]}


@app.get("/connections/{user_id}/status")
async def connection_status(user_id: str, x_user_id: Optional[str] = Header(None)):
    """Connection status between the current member and user_id

    Returns:
        {
            "status": "none" | "pending" | "accepted" | "declined",
            "is_requester": bool,
            "mutual_connections": int
        }
    """
    session = await require_session(x_user_id)
    state = await connection_service.get_connection_status(session.user_id, user_id)
    mutual = await connection_service.get_mutual_connections_count(session.user_id, user_id)
    return {
        "status": state.status.value,
        "is_requester": state.is_requester,
        "mutual_connections": mutual.count,
    }


@app.post("/connections/{user_id}")
async def send_connection_request(user_id: str, x_user_id: Optional[str] = Header(None)):
    session = await require_session(x_user_id)
    return respond(await connection_service.send_connection_request(session.user_id, user_id))


@app.post("/connections/{user_id}/accept")
async def accept_connection_request(user_id: str, x_user_id: Optional[str] = Header(None)):
    """Accept the pending request user_id sent to the current member"""
    session = await require_session(x_user_id)
    return respond(await connection_service.accept_connection_request(session.user_id, user_id))


@app.post("/connections/{user_id}/decline")
async def decline_connection_request(user_id: str, x_user_id: Optional[str] = Header(None)):
    session = await require_session(x_user_id)
    return respond(await connection_service.decline_connection_request(session.user_id, user_id))


@app.delete("/connections/{user_id}/request")
async def withdraw_connection_request(user_id: str, x_user_id: Optional[str] = Header(None)):
    """Withdraw the current member's pending request to user_id"""
    session = await require_session(x_user_id)
    return respond(await connection_service.withdraw_connection_request(session.user_id, user_id))


@app.delete("/connections/{user_id}")
async def remove_connection(user_id: str, x_user_id: Optional[str] = Header(None)):
    session = await require_session(x_user_id)
    return respond(await connection_service.remove_connection(session.user_id, user_id))


# Mention Endpoints

@app.get("/mentions/suggestions")
async def mention_suggestions(q: str = "", x_user_id: Optional[str] = Header(None)):
    """Candidates for an @-mention being typed

    Returns:
        {"suggestions": [{"id", "name", "type", "avatar_url", "descriptor"}]}
    """
    try:
        session = await SessionContext.load(db, x_user_id)
        resolver = MentionResolver(db, session)
        candidates = await resolver.resolve(q)
        return {"suggestions": [c.model_dump() for c in candidates]}
    except Exception as e:
        logger.error(f"Error resolving mention suggestions: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


# Notification Endpoints

@app.get("/notifications")
async def list_notifications(limit: int = 50, x_user_id: Optional[str] = Header(None)):
    session = await require_session(x_user_id)
    notifications = await notification_service.list_notifications(session.user_id, limit)
    return {"notifications": [n.model_dump(mode="json") for n in notifications]}


@app.get("/notifications/unread-count")
async def unread_count(x_user_id: Optional[str] = Header(None)):
    session = await require_session(x_user_id)
    return {"count": await notification_service.unread_count(session.user_id)}


@app.post("/notifications/read-all")
async def mark_all_read(x_user_id: Optional[str] = Header(None)):
    session = await require_session(x_user_id)
    return respond(await notification_service.mark_all_as_read(session.user_id))


@app.post("/notifications/{notification_id}/read")
async def mark_read(notification_id: str, x_user_id: Optional[str] = Header(None)):
    session = await require_session(x_user_id)
    return respond(await notification_service.mark_as_read(notification_id, session.user_id))


@app.delete("/notifications")
async def clear_all_notifications(x_user_id: Optional[str] = Header(None)):
    session = await require_session(x_user_id)
    return respond(await notification_service.clear_all(session.user_id))


@app.delete("/notifications/read")
async def clear_read_notifications(x_user_id: Optional[str] = Header(None)):
    session = await require_session(x_user_id)
    return respond(await notification_service.clear_read(session.user_id))


@app.get("/notifications/stats")
async def notification_stats(x_user_id: Optional[str] = Header(None)):
    session = await require_session(x_user_id)
    stats = await notification_service.get_notification_stats(session.user_id)
    return stats.model_dump()


@app.post("/notifications/cleanup")
async def trigger_notification_cleanup(x_api_key: str = Header(None, alias="X-API-Key")):
    """Run the retention cleanup via external scheduler (e.g., cron)

    Requires API key authentication via X-API-Key header.
    """
    if x_api_key != settings.CRON_API_KEY:
        logger.warning(f"Unauthorized cleanup attempt with key: {x_api_key[:8] if x_api_key else 'None'}...")
        raise HTTPException(status_code=401, detail="Unauthorized")

    logger.info("External trigger for notification cleanup received")
    result = await run_notification_cleanup(notification_service)
    if result["status"] != "success":
        raise HTTPException(status_code=500, detail=result.get("error", "Unknown error"))
    return result


@app.on_event("startup")
async def startup_event():
    """Start the retention scheduler on server startup"""
    global scheduler
    logger.info(f"Starting Fundspace Social Core ({settings.ENVIRONMENT})")

    if settings.ENABLE_SCHEDULER:
        scheduler = start_scheduler(notification_service)
    else:
        logger.info("Scheduler disabled - use POST /notifications/cleanup to run retention manually")


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on server shutdown"""
    global scheduler
    if scheduler is not None:
        stop_scheduler(scheduler)
        scheduler = None
    logger.info("Shutting down Fundspace Social Core")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000, log_level="info")
