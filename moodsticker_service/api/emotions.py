from dataclasses import asdict

from fastapi import APIRouter, Request, HTTPException

from ..models.emotions import ResolveRequest, ResolveResponse, MatchRequest, SelectRequest, MoodUpdate

router = APIRouter(prefix="/api/emotions")


def _get_coordinator(request: Request):
    coordinator = request.app.state.coordinator
    if not coordinator:
        raise HTTPException(status_code=503, detail="Emotion pipeline not available")
    return coordinator


@router.post("/resolve", response_model=ResolveResponse)
async def resolve(request: Request, body: ResolveRequest):
    coordinator = _get_coordinator(request)
    resolution = await coordinator.resolver.resolve(body.text)
    return ResolveResponse(labels=resolution.labels, outcome=resolution.outcome, reason=resolution.reason)


@router.post("/match")
async def match(request: Request, body: MatchRequest):
    coordinator = _get_coordinator(request)
    ranked = await coordinator.matcher.match_scores(body.labels)
    matches = [{"image_id": image_id, "score": round(score, 4)} for image_id, score in ranked[:body.top_k]]
    return {"matches": matches, "count": len(matches)}


@router.post("/select")
async def select(request: Request, body: SelectRequest):
    coordinator = _get_coordinator(request)
    selection = await coordinator.select_image(body.text)
    return asdict(selection)


@router.put("/mood")
async def set_mood(request: Request, body: MoodUpdate):
    mood_state = request.app.state.mood_state
    if not mood_state:
        raise HTTPException(status_code=503, detail="Mood state not available")
    mood_state.set(body.mood)
    return {"mood": mood_state.current_mood().value}
