from __future__ import annotations

from flask import Flask, jsonify, request

from ..common.http import json_body
from ..container import Container
from ..core.enums import AlertType


def register(app: Flask, container: Container) -> None:
    dispatcher = container.notification_dispatcher

    @app.post("/api/alerts", endpoint="send_alert")
    def send_alert():
        data = json_body()
        member_id = data.get("member_id")
        fields = dict(
            title=data.get("title", ""),
            message=data.get("message", ""),
            alert_type=data.get("type") or AlertType.INFO,
        )
        if member_id:
            alert, report = dispatcher.send_alert(member_id, **fields)
        else:
            alert, report = dispatcher.send_broadcast(**fields)
        return jsonify({"alert": alert.to_dict(), "delivery": report.to_dict()}), 201

    @app.get("/api/alerts", endpoint="recent_alerts")
    def recent_alerts():
        limit = request.args.get("limit", default=50, type=int)
        return jsonify({"alerts": [a.to_dict() for a in container.alerts_repo.list_recent(limit)]})

    @app.get("/api/members/<member_id>/alerts", endpoint="member_alerts")
    def member_alerts(member_id: str):
        alerts = dispatcher.alerts_for_member(member_id)
        return jsonify(
            {
                "alerts": [a.to_dict() for a in alerts],
                "unread": sum(1 for a in alerts if not a.is_read),
            }
        )

    @app.post("/api/members/<member_id>/alerts/<alert_id>/read", endpoint="mark_alert_read")
    def mark_alert_read(member_id: str, alert_id: str):
        dispatcher.mark_read(alert_id, member_id)
        return jsonify({"ok": True})

    @app.post("/api/members/<member_id>/alerts/read-all", endpoint="mark_all_alerts_read")
    def mark_all_alerts_read(member_id: str):
        return jsonify({"marked": dispatcher.mark_all_read(member_id)})

    @app.post("/api/members/<member_id>/device-tokens", endpoint="add_member_token")
    def add_member_token(member_id: str):
        dispatcher.register_member_token(member_id, json_body().get("token", ""))
        return jsonify({"ok": True}), 201

    @app.delete("/api/members/<member_id>/device-tokens", endpoint="remove_member_token")
    def remove_member_token(member_id: str):
        dispatcher.remove_member_token(member_id, json_body().get("token", ""))
        return "", 204

    @app.post("/api/admins/<admin_id>/device-tokens", endpoint="add_admin_token")
    def add_admin_token(admin_id: str):
        dispatcher.register_admin_token(admin_id, json_body().get("token", ""))
        return jsonify({"ok": True}), 201

    @app.delete("/api/admins/<admin_id>/device-tokens", endpoint="remove_admin_token")
    def remove_admin_token(admin_id: str):
        dispatcher.remove_admin_token(admin_id, json_body().get("token", ""))
        return "", 204
