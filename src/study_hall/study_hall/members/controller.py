from __future__ import annotations

from flask import Flask, jsonify, request

from ..common.http import json_body
from ..common.validators import require_enum
from ..container import Container
from ..core.enums import ActivityStatus, FeeStatus


def register(app: Flask, container: Container) -> None:
    service = container.membership_service

    @app.get("/api/seats/available", endpoint="available_seats")
    def available_seats():
        shift = request.args.get("shift", "")
        seats = service.available_seats(shift, exclude_member_id=request.args.get("exclude_member_id") or None)
        return jsonify({"shift": shift, "seats": seats})

    @app.get("/api/members", endpoint="list_members")
    def list_members():
        activity = request.args.get("activity_status")
        fee = request.args.get("fee_status")
        members = service.list_members(
            activity_status=require_enum(ActivityStatus, activity, "activity_status") if activity else None,
            fee_status=require_enum(FeeStatus, fee, "fee_status") if fee else None,
        )
        return jsonify({"members": [m.to_dict() for m in members]})

    @app.post("/api/members", endpoint="register_member")
    def register_member():
        data = json_body()
        member = service.register(
            name=data.get("name", ""),
            phone=data.get("phone", ""),
            shift=data.get("shift", ""),
            seat_number=str(data.get("seat_number", "")),
            email=data.get("email"),
            address=data.get("address"),
        )
        return jsonify(member.to_dict()), 201

    @app.get("/api/members/<member_id>", endpoint="get_member")
    def get_member(member_id: str):
        return jsonify(service.get_member(member_id).to_dict())

    @app.patch("/api/members/<member_id>", endpoint="edit_member")
    def edit_member(member_id: str):
        data = json_body()
        seat = data.get("seat_number")
        member = service.edit(
            member_id,
            name=data.get("name"),
            phone=data.get("phone"),
            email=data.get("email"),
            address=data.get("address"),
            shift=data.get("shift"),
            seat_number=str(seat) if seat is not None else None,
        )
        return jsonify(member.to_dict())

    @app.post("/api/members/<member_id>/leave", endpoint="mark_member_left")
    def mark_member_left(member_id: str):
        return jsonify(service.mark_as_left(member_id).to_dict())

    @app.post("/api/members/<member_id>/reactivate", endpoint="reactivate_member")
    def reactivate_member(member_id: str):
        data = json_body()
        member = service.reactivate(
            member_id,
            seat_number=str(data.get("seat_number", "")),
            shift=data.get("shift"),
        )
        return jsonify(member.to_dict())

    @app.delete("/api/members/<member_id>", endpoint="delete_member")
    def delete_member(member_id: str):
        service.delete_member(member_id)
        return "", 204

    @app.post("/api/members/refresh", endpoint="refresh_members")
    def refresh_members():
        return jsonify({"updated": service.refresh_all()})
