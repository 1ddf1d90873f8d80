from __future__ import annotations

from flask import Flask, jsonify, request

from ..common.http import date_arg, json_body
from ..container import Container
from ..core.enums import PaymentMethod
from ..core.exceptions import ValidationError
from .money import format_amount


def register(app: Flask, container: Container) -> None:
    ledger = container.billing_ledger

    @app.post("/api/members/<member_id>/payments", endpoint="record_payment")
    def record_payment(member_id: str):
        data = json_body()
        member, payment = ledger.record_payment(
            member_id,
            amount=data.get("amount"),
            method=data.get("method") or PaymentMethod.CASH,
            months_covered=data.get("months_covered", 1),
        )
        return jsonify({"member": member.to_dict(), "payment": payment.to_dict()}), 201

    @app.get("/api/revenue", endpoint="revenue")
    def revenue():
        start, end = date_arg("start"), date_arg("end")
        if start is None and end is None:
            total = ledger.current_month_revenue()
        elif start is None or end is None:
            raise ValidationError("start and end must be given together")
        else:
            total = ledger.monthly_revenue(start, end)
        return jsonify({"total": format_amount(total), "value": total})

    @app.get("/api/revenue/history", endpoint="revenue_history")
    def revenue_history():
        limit = request.args.get("limit", type=int)
        return jsonify({"months": [m.to_dict() for m in ledger.revenue_history(limit=limit)]})
