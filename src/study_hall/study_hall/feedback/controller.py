from __future__ import annotations

from flask import Flask, jsonify, request

from ..common.http import json_body
from ..container import Container


def register(app: Flask, container: Container) -> None:
    service = container.feedback_service

    @app.post("/api/feedback", endpoint="submit_feedback")
    def submit_feedback():
        data = json_body()
        item = service.submit(
            message=data.get("message", ""),
            feedback_type=data.get("type", ""),
            member_id=data.get("member_id") or None,
        )
        return jsonify(item.to_dict()), 201

    @app.get("/api/feedback", endpoint="list_feedback")
    def list_feedback():
        items = service.list_feedback(status=request.args.get("status") or None)
        return jsonify({"feedback": [i.to_dict() for i in items]})

    @app.patch("/api/feedback/<feedback_id>", endpoint="update_feedback_status")
    def update_feedback_status(feedback_id: str):
        return jsonify(service.update_status(feedback_id, json_body().get("status", "")).to_dict())

    @app.post("/api/feedback/<feedback_id>/respond", endpoint="respond_to_feedback")
    def respond_to_feedback(feedback_id: str):
        item, alert, report = service.respond(feedback_id, json_body().get("message", ""))
        return jsonify({"feedback": item.to_dict(), "alert": alert.to_dict(), "delivery": report.to_dict()}), 201
