# Overview: Flask API routes for read-only aggregates; parses input and returns JSON responses.

from flask import Blueprint

from ..decorators import bad_request, json_errors, parse_date_arg, require_store_id, result_response
from ..services import reporting_service

reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/daily")
@require_store_id
@json_errors
def daily_route(store_id: int):
    day, error = parse_date_arg("date")
    if error is not None:
        return error
    return result_response(reporting_service.daily_stats(store_id, day))


@reports_bp.get("/dashboard")
@require_store_id
@json_errors
def dashboard_route(store_id: int):
    return result_response(reporting_service.dashboard_stats(store_id))


@reports_bp.get("/accounts-receivable")
@require_store_id
@json_errors
def accounts_receivable_route(store_id: int):
    return result_response(
        reporting_service.accounts_receivable(store_id),
        serialize=lambda rows: {"items": rows, "count": len(rows)},
    )


@reports_bp.get("/sales-summary")
@require_store_id
@json_errors
def sales_summary_route(store_id: int):
    start, error = parse_date_arg("start")
    if error is not None:
        return error
    end, error = parse_date_arg("end")
    if error is not None:
        return error
    if start is None or end is None:
        return bad_request("start and end dates required")
    return result_response(reporting_service.sales_summary(store_id, start, end))
