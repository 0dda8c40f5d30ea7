# Overview: Flask API routes for ledger operations; parses input and returns JSON responses.

from flask import Blueprint, jsonify, request

from ..extensions import get_context
from ..services import reporting_service

ledger_bp = Blueprint("ledger", __name__, url_prefix="/api/transactions")


@ledger_bp.get("")
async def list_transactions_route():
    """Most recent transactions, newest first. ?limit= (default from config, max 1000)."""
    limit = request.args.get("limit", type=int)
    items = await reporting_service.list_recent_transactions(get_context(), limit)
    return jsonify(items)
