"""Export endpoints for draft results."""

from __future__ import annotations

import io

from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import StreamingResponse

import pandas as pd

from ..errors import DraftError
from ..services.draft_service import get_draft_service

router = APIRouter()

RESULT_COLUMNS = ["Pick", "Round", "Team", "Player", "Position", "Overall"]


@router.get("/draft/{league_id}")
async def export_draft_results(
    league_id: str,
    format: str = Query("csv", description="Export format: 'csv' or 'xlsx'"),
):
    """Export every pick made so far, in pick order.

    Columns: Pick, Round, Team, Player, Position, Overall
    """
    try:
        results = get_draft_service().draft_results(league_id)
    except DraftError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())

    rows = [
        {
            "Pick": pick.pick_number,
            "Round": pick.round,
            "Team": team.name or team.team_id,
            "Player": pick.player_name,
            "Position": pick.position,
            "Overall": pick.overall_rating,
        }
        for team, pick in results
    ]
    return _file_response(pd.DataFrame(rows, columns=RESULT_COLUMNS), format, f"draft_{league_id}")


def _file_response(df: pd.DataFrame, fmt: str, basename: str) -> StreamingResponse:
    """Stream *df* as an XLSX workbook or, for any other format, CSV."""
    if fmt.lower() == "xlsx":
        buf = io.BytesIO()
        df.to_excel(buf, index=False, sheet_name="Draft", engine="openpyxl")
        media_type = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
        filename = f"{basename}.xlsx"
    else:
        buf = io.BytesIO(df.to_csv(index=False).encode("utf-8"))
        media_type = "text/csv"
        filename = f"{basename}.csv"
    buf.seek(0)
    return StreamingResponse(
        buf,
        media_type=media_type,
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )
