"""Export utilities - CSV and Excel downloads of weekly series and 7R grids."""
import io
import csv
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, HTTPException
from fastapi.responses import StreamingResponse
from openpyxl import Workbook

from stathq.auth.dependencies import get_current_actor
from stathq.modules.stats.assignment import Actor
from stathq.modules.stats.routes import get_service, _stat_ref
from stathq.modules.stats.service import StatValueService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/export", tags=["Export"])


def _rows_to_csv(rows: list[dict]) -> io.BytesIO:
    text_buf = io.StringIO()
    if not rows:
        text_buf.write("No data\n")
    else:
        writer = csv.DictWriter(text_buf, fieldnames=list(rows[0].keys()))
        writer.writeheader()
        writer.writerows(rows)
    out = io.BytesIO(text_buf.getvalue().encode("utf-8"))
    out.seek(0)
    return out


def _rows_to_excel(sheet_name: str, rows: list[dict]) -> io.BytesIO:
    wb = Workbook()
    ws = wb.active
    ws.title = sheet_name[:31] or "Data"
    if not rows:
        ws.append(["No data"])
    else:
        headers = list(rows[0].keys())
        ws.append(headers)
        for row in rows:
            ws.append([row.get(key, "") for key in headers])
    out = io.BytesIO()
    wb.save(out)
    out.seek(0)
    return out


def _stream_file(rows: list[dict], filename_base: str, fmt: str, sheet_name: str) -> StreamingResponse:
    if fmt == "xlsx":
        return StreamingResponse(
            _rows_to_excel(sheet_name, rows),
            media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            headers={"Content-Disposition": f"attachment; filename={filename_base}.xlsx"},
        )
    if fmt == "csv":
        return StreamingResponse(
            _rows_to_csv(rows),
            media_type="text/csv",
            headers={"Content-Disposition": f"attachment; filename={filename_base}.csv"},
        )
    raise HTTPException(status_code=400, detail="Invalid format. Use csv or xlsx")


@router.get("/weekly")
def export_weekly(
    stat_id: Optional[int] = None,
    stat: Optional[str] = None,
    user_id: Optional[int] = None,
    format: str = Query("csv", pattern="^(csv|xlsx)$"),
    svc: StatValueService = Depends(get_service),
    actor: Actor = Depends(get_current_actor),
):
    points = svc.get_canonical_weekly(actor, _stat_ref(stat_id, stat), on_behalf_of=user_id)
    rows = [{"week_ending": p["week_ending"], "value": p["display"]} for p in points]
    name = f"weekly_{stat_id or stat}".lower()
    logger.info("Exporting %s weekly rows for stat %s as %s", len(rows), stat_id or stat, format)
    return _stream_file(rows, name, format, "Weekly")


@router.get("/7r")
def export_7r(
    date: str,
    stat_id: Optional[int] = None,
    stat: Optional[str] = None,
    format: str = Query("csv", pattern="^(csv|xlsx)$"),
    svc: StatValueService = Depends(get_service),
    actor: Actor = Depends(get_current_actor),
):
    grid = svc.get_daily_grid(actor, _stat_ref(stat_id, stat), date)
    name = f"7r_{grid['short_id']}_{grid['week_ending']}".lower()
    return _stream_file(grid["rows"], name, format, "7R")
