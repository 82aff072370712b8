"""REST endpoints for reading team rosters."""

from fastapi import APIRouter, HTTPException, Request

from roster_enroll.api.routes.enrollment import serialize_record
from roster_enroll.services.jersey_registry import build_jersey_set

router = APIRouter(prefix="/api/teams", tags=["roster"])


def _require_team(request: Request, team_id: str) -> dict:
    team = request.app.state.repository.get_team(team_id)
    if not team:
        raise HTTPException(status_code=404, detail="Team not found")
    return team


@router.get("/{team_id}/roster")
async def get_roster(request: Request, team_id: str):
    """List all players on a team."""
    team = _require_team(request, team_id)
    players = request.app.state.repository.list_roster(team_id)
    return {
        "team": {"id": team["id"], "name": team["team_name"], "sport": team.get("sport")},
        "players": [serialize_record(p) for p in players],
    }


@router.get("/{team_id}/roster/{roster_id}")
async def get_roster_record(request: Request, team_id: str, roster_id: str):
    record = request.app.state.repository.get_roster(roster_id)
    if record is None or record.team_id != team_id:
        raise HTTPException(status_code=404, detail="Player not found")
    return serialize_record(record)


@router.get("/{team_id}/jerseys")
async def get_taken_jerseys(request: Request, team_id: str):
    """Jersey numbers currently in use, normalized."""
    _require_team(request, team_id)
    taken = build_jersey_set(team_id, request.app.state.repository.list_jersey_numbers(team_id))
    return {"team_id": team_id, "taken": sorted(taken.numbers)}
