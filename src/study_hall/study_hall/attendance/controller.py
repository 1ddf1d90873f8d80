from __future__ import annotations

from flask import Flask, jsonify

from ..common.http import date_arg
from ..container import Container


def register(app: Flask, container: Container) -> None:
    tracker = container.attendance_tracker

    @app.post("/api/members/<member_id>/check-in", endpoint="check_in")
    def check_in(member_id: str):
        return jsonify(tracker.check_in(member_id).to_dict()), 201

    @app.post("/api/sessions/<session_id>/check-out", endpoint="check_out")
    def check_out(session_id: str):
        session = tracker.check_out(session_id)
        return jsonify({**session.to_dict(), "hours": tracker.session_hours(session)})

    @app.get("/api/members/<member_id>/sessions", endpoint="member_sessions")
    def member_sessions(member_id: str):
        day = date_arg("date")
        sessions = tracker.sessions_for_date(member_id, day) if day else tracker.sessions_for_member(member_id)
        active = tracker.active_session(member_id)
        return jsonify(
            {
                "sessions": [{**s.to_dict(), "hours": tracker.session_hours(s)} for s in sessions],
                "active_session_id": active.session_id if active else None,
            }
        )

    @app.get("/api/members/<member_id>/study-hours", endpoint="study_hours")
    def study_hours(member_id: str):
        return jsonify({"member_id": member_id, "hours": tracker.monthly_study_hours(member_id)})

    @app.get("/api/attendance/active", endpoint="active_check_ins")
    def active_check_ins():
        return jsonify({"checked_in": [row.to_dict() for row in tracker.checked_in_members()]})
