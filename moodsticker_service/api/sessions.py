from fastapi import APIRouter, Request, HTTPException

from ..models.sessions import (
    StartSessionRequest,
    EndSessionRequest,
    RegisterRequestBody,
    CaptureRequest,
    SessionStatus,
)
from ..services.session_broker import InvalidSessionState

router = APIRouter(prefix="/api/sessions")


def _get_coordinator(request: Request):
    coordinator = request.app.state.coordinator
    if not coordinator:
        raise HTTPException(status_code=503, detail="Session broker not available")
    return coordinator


@router.get("/current", response_model=SessionStatus)
async def current_session(request: Request):
    broker = _get_coordinator(request).broker
    session = broker.snapshot()
    return SessionStatus(
        active=session is not None,
        owner_id=session.owner_id if session else None,
        session_id=session.id if session else None,
        capture_enabled=broker.is_capture_enabled(),
    )


@router.post("/start")
async def start_session(request: Request, body: StartSessionRequest):
    coordinator = _get_coordinator(request)
    try:
        session_id = coordinator.start_exclusive_session(body.owner_id)
    except InvalidSessionState as e:
        raise HTTPException(status_code=409, detail=str(e))
    return {"session_id": session_id, "owner_id": body.owner_id}


@router.post("/end")
async def end_session(request: Request, body: EndSessionRequest):
    coordinator = _get_coordinator(request)
    ended = coordinator.end_exclusive_session(body.owner_id, body.session_id)
    return {"ended": ended}


@router.post("/requests")
async def register_request(request: Request, body: RegisterRequestBody):
    coordinator = _get_coordinator(request)
    try:
        request_id = coordinator.register_display(body.session_id, body.description)
    except InvalidSessionState as e:
        raise HTTPException(status_code=409, detail=str(e))
    return {"request_id": request_id}


@router.post("/requests/{request_id}/complete")
async def complete_request(request: Request, request_id: str):
    coordinator = _get_coordinator(request)
    coordinator.complete_display(request_id)
    return {"request_id": request_id, "completed": True}


@router.get("/requests")
async def list_requests(request: Request):
    broker = _get_coordinator(request).broker
    requests = [
        {
            "request_id": r.id,
            "session_id": r.session_id,
            "description": r.description,
            "created_at": r.created_at.isoformat(),
            "completed_at": r.completed_at.isoformat() if r.completed_at else None,
            "is_complete": r.is_complete,
        }
        for r in broker.requests()
    ]
    return {"requests": requests, "count": len(requests)}


@router.post("/capture")
async def set_capture(request: Request, body: CaptureRequest):
    broker = _get_coordinator(request).broker
    if body.enabled:
        broker.enable_capture()
    else:
        broker.disable_capture()
    return {"capture_enabled": broker.is_capture_enabled()}
