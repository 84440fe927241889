"""Admin endpoints: manual deadline triggers, auto-picks and result processing."""

from fastapi import APIRouter, Depends, Query, Request

from los.routers.deps import get_engine, verify_admin_key
from los.services.audit_service import list_audit, log_audit
from los.services.engine import RoundEngine

router = APIRouter(prefix="/api/admin", tags=["admin"], dependencies=[Depends(verify_admin_key)])


@router.post("/rounds/{round_number}/deadline/trigger")
async def trigger_deadline(round_number: int, request: Request, engine: RoundEngine = Depends(get_engine)):
    """Force the deadline transition and assign auto-picks."""
    count = await engine.trigger_deadline(round_number)
    await log_audit(
        actor_id="ADMIN", target_id=f"round:{round_number}", action="ADMIN_TRIGGER_DEADLINE",
        metadata={"auto_picks": count}, request=request,
    )
    return {"round_number": round_number, "state": engine.round_state(round_number).value, "auto_picks": count}


@router.post("/rounds/{round_number}/auto-picks")
async def assign_auto_picks(round_number: int, request: Request, engine: RoundEngine = Depends(get_engine)):
    picks = await engine.assign_auto_picks(round_number)
    await log_audit(
        actor_id="ADMIN", target_id=f"round:{round_number}", action="ADMIN_ASSIGN_AUTO_PICKS",
        metadata={"count": len(picks)}, request=request,
    )
    return {"round_number": round_number, "count": len(picks), "picks": [p.model_dump() for p in picks]}


@router.post("/rounds/{round_number}/results")
async def process_round_results(round_number: int, request: Request, engine: RoundEngine = Depends(get_engine)):
    summaries = await engine.process_round_results(round_number)
    await log_audit(
        actor_id="ADMIN", target_id=f"round:{round_number}", action="ADMIN_PROCESS_RESULTS",
        metadata={"fixtures": len(summaries)}, request=request,
    )
    return {"round_number": round_number, "fixtures": [s.model_dump() for s in summaries]}


@router.post("/deadlines/check-all")
async def check_all_deadlines(engine: RoundEngine = Depends(get_engine)):
    states = await engine.check_all_deadlines()
    return {"rounds": {str(n): state.value for n, state in states.items()}}


@router.get("/engine/status")
async def engine_status(engine: RoundEngine = Depends(get_engine)):
    return {
        "deadline_monitor": engine.monitor.status(),
        "result_resolver": engine.resolver.status(),
        "event_bus": engine.bus.stats(),
    }


@router.get("/audit")
async def audit_log(
    target_id: str | None = Query(None),
    action: str | None = Query(None),
    limit: int = Query(100, ge=1, le=500),
):
    return {"items": await list_audit(target_id=target_id, action=action, limit=limit)}
