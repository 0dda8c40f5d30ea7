from flask import Blueprint, jsonify, request

from ..errors import ValidationError
from ..extensions import get_context
from ..services import reporting_service
from ..time_utils import parse_timestamp


reports_bp = Blueprint("reports", __name__, url_prefix="/api")

"""
Time semantics:
- from/to accept epoch milliseconds or ISO-8601 datetimes (Z/offsets; naive = UTC).
- Both bounds are inclusive. Defaults: from=0, to=now.
"""


@reports_bp.get("/report/pnl")
async def pnl_report():
    try:
        start = parse_timestamp(request.args.get("from"), default=None)
        end = parse_timestamp(request.args.get("to"), default=None)
    except ValueError:
        raise ValidationError("from and to must be epoch milliseconds or ISO-8601 datetimes")

    report = await reporting_service.report_profit_and_loss(get_context(), start, end)
    return jsonify(report), 200


@reports_bp.get("/report/product/<product_id>")
async def product_movements_report(product_id: str):
    return jsonify(await reporting_service.report_product_movements(get_context(), product_id))


@reports_bp.get("/report/valuation")
async def valuation_report():
    return jsonify(await reporting_service.stock_valuation(get_context()))


@reports_bp.get("/stats")
async def stats():
    return jsonify(await reporting_service.summary_stats(get_context()))
