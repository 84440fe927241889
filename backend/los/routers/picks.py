"""Pick endpoints: submit picks, check deadlines and status, view standings."""

from fastapi import APIRouter, Depends, HTTPException, Query, status

from los.models.pick import PickCreate
from los.routers.deps import get_engine
from los.services.engine import RoundEngine

router = APIRouter(prefix="/api", tags=["picks"])


@router.post("/picks", status_code=status.HTTP_201_CREATED)
async def make_pick(body: PickCreate, engine: RoundEngine = Depends(get_engine)):
    """Make a manual pick for a round. Validation failures map to 400/409."""
    pick = await engine.make_pick(body.participant_id, body.round_number, body.team)
    return pick.model_dump()


@router.get("/rounds/current")
async def current_round(engine: RoundEngine = Depends(get_engine)):
    round_number = await engine.current_round()
    if round_number is None:
        return {"round_number": None, "state": None}
    return {"round_number": round_number, "state": engine.round_state(round_number).value}


@router.get("/rounds/{round_number}/deadline")
async def deadline_info(round_number: int, engine: RoundEngine = Depends(get_engine)):
    info = await engine.get_deadline_info(round_number)
    if info is None:
        raise HTTPException(status.HTTP_404_NOT_FOUND, "No deadline available for this round.")
    return info.model_dump()


@router.get("/participants/{participant_id}/status")
async def participant_status(
    participant_id: str,
    round_number: int = Query(...),
    engine: RoundEngine = Depends(get_engine),
):
    pick_status = await engine.check_participant_deadline_status(participant_id, round_number)
    return pick_status.model_dump()


@router.get("/participants/{participant_id}/available-teams")
async def available_teams(
    participant_id: str,
    round_number: int = Query(...),
    engine: RoundEngine = Depends(get_engine),
):
    return {"teams": await engine.get_available_teams(participant_id, round_number)}


@router.get("/standings")
async def standings(engine: RoundEngine = Depends(get_engine)):
    return [row.model_dump() for row in await engine.get_standings()]
