"""FastAPI main application for the Student Dev-Stats Dashboard."""

import os
import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import date
from io import BytesIO, StringIO
from typing import Dict, List, Optional

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.responses import HTMLResponse, JSONResponse, StreamingResponse
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from dotenv import load_dotenv
import traceback

from devstats.api_client import DataAPIClient, DataAPIError
from devstats.cache import TTLCache
from devstats.compare import compare_students, find_students, radar_profile
from devstats.leaderboard import build_leaderboard, class_overview, metrics_frame
from devstats.metrics import compute_class_stats, compute_cohort_metrics, compute_student_metrics
from devstats.models import (
    ClassOverview,
    LeaderboardEntry,
    Notification,
    RadarPoint,
    RemoveNotificationRequest,
    RemoveNotificationResponse,
    StudentComparison,
    StudentMetrics,
    StudentRecord,
    StudentRow,
    SuspiciousStudent,
    UpdateResponse,
)
from devstats.roster import ALL_CLASSES_KEY, filter_students, sort_students, union_rosters
from devstats.suspicious import detect_suspicious_activities, format_suspicious_reason, get_suspicious_students

# Load environment variables
load_dotenv()

logging.basicConfig(
    level=os.getenv('LOG_LEVEL', 'INFO').upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Configuration
DATA_API_BASE_URL = os.getenv('DATA_API_BASE_URL', 'http://localhost:5000')
DATA_API_TIMEOUT = float(os.getenv('DATA_API_TIMEOUT', '15'))
CACHE_TTL_SECONDS = float(os.getenv('CACHE_TTL_SECONDS', '3600'))
LAST_UPDATE_TTL_SECONDS = float(os.getenv('LAST_UPDATE_TTL_SECONDS', '300'))


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await api_client.aclose()


app = FastAPI(title="Student Dev-Stats Dashboard", version="1.0.0", lifespan=lifespan)

# CORS configuration
allow_origins = os.getenv('ALLOW_ORIGINS', '*').split(',')
app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

api_client = DataAPIClient(
    base_url=DATA_API_BASE_URL,
    cache=TTLCache(default_ttl=CACHE_TTL_SECONDS),
    timeout_s=DATA_API_TIMEOUT,
    last_update_ttl_s=LAST_UPDATE_TTL_SECONDS,
)


# Override default exception handlers to return JSON (register specific handlers first)
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler_json(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions and return JSON."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail}
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler_json(request: Request, exc: RequestValidationError):
    """Handle validation errors and return JSON."""
    return JSONResponse(
        status_code=422,
        content={"detail": exc.errors()}
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle all unhandled exceptions and return JSON."""
    error_detail = str(exc)
    if os.getenv('DEBUG', 'False').lower() == 'true':
        error_detail = f"{str(exc)}\n\n{traceback.format_exc()}"

    logger.exception("Unhandled error on %s", request.url.path)
    return JSONResponse(
        status_code=500,
        content={
            "detail": f"Internal server error: {error_detail}",
            "type": type(exc).__name__
        }
    )


def upstream_error(e: DataAPIError) -> HTTPException:
    return HTTPException(status_code=502, detail=str(e))


async def _load_class_quietly(table_name: str) -> List[StudentRecord]:
    try:
        return await api_client.get_student_data(table_name, use_cached_last_update=True)
    except DataAPIError as e:
        logger.warning("Skipping class %s: %s", table_name, e)
        return []


async def load_cohort(table_name: str) -> List[StudentRecord]:
    """Roster for one class, or the union of every class for the all-classes key."""
    try:
        if table_name != ALL_CLASSES_KEY:
            return await api_client.get_student_data(table_name, use_cached_last_update=True)

        tables = await api_client.get_available_tables()
    except DataAPIError as e:
        raise upstream_error(e)

    results = await asyncio.gather(*(_load_class_quietly(table) for table in tables))
    rosters: Dict[str, List[StudentRecord]] = dict(zip(tables, results))
    return union_rosters(rosters)


@app.get("/", response_class=HTMLResponse)
async def root():
    """Serve the landing page."""
    return HTMLResponse(
        content="<h1>Student Dev-Stats Dashboard</h1>"
        "<p>See <a href=\"/docs\">/docs</a> for the available class views.</p>"
    )


@app.get("/health")
async def health_check():
    """Health check endpoint, including the upstream data API."""
    try:
        upstream = await api_client.check_health()
        upstream_ok = bool(upstream.get("ok", False))
    except DataAPIError:
        upstream_ok = False
    return JSONResponse(content={"status": "ok", "upstream_ok": upstream_ok})


@app.get("/classes")
async def list_classes():
    """List the class tables available on the data API."""
    try:
        tables = await api_client.get_available_tables()
    except DataAPIError as e:
        raise upstream_error(e)
    return {"tables": tables, "all_classes_key": ALL_CLASSES_KEY}


@app.get("/classes/{table_name}/students", response_model=List[StudentRow])
async def get_students(
    table_name: str,
    search: Optional[str] = None,
    activity: str = "all",
    sort_field: str = "name",
    direction: str = "asc",
):
    """Student table rows with their suspicious-activity flags."""
    students = await load_cohort(table_name)
    try:
        rows = sort_students(filter_students(students, search, activity), sort_field, direction)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    results = []
    for student in rows:
        activities = detect_suspicious_activities(student)
        results.append(StudentRow(
            student=student,
            activities=activities,
            suspicious_reason=format_suspicious_reason(activities),
        ))
    return results


@app.get("/classes/{table_name}/leaderboard", response_model=List[LeaderboardEntry])
async def get_leaderboard(
    table_name: str,
    sort: str = "combined_score",
    search: Optional[str] = None,
    top_n: int = Query(10, ge=1),
):
    """Top students of the cohort ranked by one metric."""
    students = await load_cohort(table_name)
    metrics = compute_cohort_metrics(students)
    try:
        leaderboard = build_leaderboard(metrics, sort_metric=sort, search=search, top_n=top_n)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    logger.info("Leaderboard for %s: %d of %d students by %s", table_name, len(leaderboard), len(metrics), sort)
    return leaderboard


@app.get("/classes/{table_name}/overview", response_model=Optional[ClassOverview])
async def get_overview(table_name: str):
    """Class summary cards (null for an empty class)."""
    students = await load_cohort(table_name)
    return class_overview(compute_cohort_metrics(students))


@app.get("/classes/{table_name}/suspicious", response_model=List[SuspiciousStudent])
async def get_suspicious(table_name: str):
    """Students with implausible activity spikes, most flags first."""
    students = await load_cohort(table_name)
    flagged = get_suspicious_students(students)
    logger.info("Suspicious activity in %s: %d of %d students flagged", table_name, len(flagged), len(students))
    return flagged


@app.get("/classes/{table_name}/students/{roll_number}/metrics", response_model=StudentMetrics)
async def get_student_metrics(table_name: str, roll_number: str):
    """One student's metrics, scored against the rest of the cohort."""
    students = await load_cohort(table_name)
    for student in students:
        if str(student.roll_number) == roll_number:
            return compute_student_metrics(student, compute_class_stats(students))
    raise HTTPException(status_code=404, detail=f"Student {roll_number} not found in {table_name}")


@app.get("/classes/{table_name}/compare", response_model=List[StudentComparison])
async def get_comparison(
    table_name: str,
    roll_numbers: List[str] = Query(...),
    range_key: str = Query("30d", alias="range"),
    start: Optional[date] = None,
    end: Optional[date] = None,
):
    """Compare two or three students with their daily GitHub and LeetCode activity."""
    students = await load_cohort(table_name)
    selected, missing = find_students(students, roll_numbers)
    if missing:
        raise HTTPException(status_code=404, detail=f"Students {', '.join(missing)} not found in {table_name}")
    try:
        return compare_students(students, selected, range_key, start, end)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.get("/classes/{table_name}/radar", response_model=List[RadarPoint])
async def get_radar(
    table_name: str,
    sort: str = "combined_score",
    search: Optional[str] = None,
    top_n: int = Query(10, ge=1),
):
    """Radar profile of the leaderboard's top students, relative to the best of them."""
    students = await load_cohort(table_name)
    try:
        leaderboard = build_leaderboard(compute_cohort_metrics(students), sort_metric=sort, search=search, top_n=top_n)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return radar_profile([entry.metrics for entry in leaderboard])


@app.get("/classes/{table_name}/download.csv")
async def download_csv(table_name: str):
    """Download the cohort's metrics as CSV."""
    students = await load_cohort(table_name)
    df = metrics_frame(compute_cohort_metrics(students))

    output = StringIO()
    df.to_csv(output, index=False)
    output.seek(0)

    return StreamingResponse(
        iter([output.getvalue()]),
        media_type="text/csv",
        headers={
            "Content-Disposition": f"attachment; filename={table_name}_metrics.csv"
        }
    )


@app.get("/classes/{table_name}/download.xlsx")
async def download_xlsx(table_name: str):
    """Download the cohort's metrics as an Excel workbook."""
    students = await load_cohort(table_name)
    df = metrics_frame(compute_cohort_metrics(students))

    output = BytesIO()
    df.to_excel(output, index=False, sheet_name="Metrics", engine="openpyxl")
    output.seek(0)

    return StreamingResponse(
        iter([output.getvalue()]),
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={
            "Content-Disposition": f"attachment; filename={table_name}_metrics.xlsx"
        }
    )


@app.post("/classes/{table_name}/update", response_model=UpdateResponse)
async def update_class(table_name: str):
    """Ask the data API to refresh a class, dropping its cached roster."""
    try:
        result = await api_client.update_database(table_name)
    except DataAPIError as e:
        raise upstream_error(e)
    logger.info("Updated %s -> %s: %d rows, %d errors", result.source_table, result.target_table, result.updated, len(result.errors))
    return result


@app.get("/notifications", response_model=List[Notification])
async def list_notifications():
    try:
        return await api_client.get_notifications()
    except DataAPIError as e:
        raise upstream_error(e)


@app.post("/notifications/remove", response_model=RemoveNotificationResponse)
async def remove_notification(request: RemoveNotificationRequest):
    try:
        return await api_client.remove_notification(request.table_name, request.roll_number)
    except DataAPIError as e:
        raise upstream_error(e)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
