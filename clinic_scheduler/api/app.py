"""HTTP API for the clinic scheduler.

Flask app exposing calendars, booking, rescheduling and the archive:

    GET    /health
    GET    /doctors/<doctor_id>/slots?date=YYYY-MM-DD[&own_appointment_id=...]
    GET    /slots/auto?specialization=...&shift=...&date=YYYY-MM-DD
    GET    /dates
    GET    /appointments[?patient_id=...&doctor_id=...]
    GET    /appointments/<appointment_id>
    POST   /appointments
    PUT    /appointments/<appointment_id>/reschedule
    DELETE /appointments/<appointment_id>?actor=...
    GET    /archive
    POST   /archive/<ref>/restore

Errors come back as {"success": false, "error": ..., "code": ...} with the
status code each scheduling error maps to.
"""
from flask import Flask, jsonify, request
from flask_cors import CORS
from pydantic import ValidationError
from werkzeug.exceptions import BadRequest

from clinic_scheduler.api.models import BookRequest, RescheduleRequest, RestoreRequest
from clinic_scheduler.errors import SchedulingError
from clinic_scheduler.logging_config import RequestIDMiddleware, get_logger
from clinic_scheduler.scheduler import ClinicScheduler
from clinic_scheduler.shift_calendar import parse_date

logger = get_logger(__name__)


def _query_date(name: str = "date"):
    value = request.args.get(name)
    if not value:
        raise BadRequest(f"Missing required parameter: {name}")
    try:
        return parse_date(value)
    except ValueError:
        raise BadRequest(f"Invalid {name} format. Use YYYY-MM-DD")


def _query_required(name: str) -> str:
    value = request.args.get(name, "").strip()
    if not value:
        raise BadRequest(f"Missing required parameter: {name}")
    return value


def _body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise BadRequest("Request body must be a JSON object")
    return data


def create_app(scheduler: ClinicScheduler) -> Flask:
    """
    Build the Flask app around a scheduler.

    Args:
        scheduler: Scheduler bound to a data directory

    Returns:
        Flask app with CORS enabled and request ids on every response
    """
    app = Flask(__name__)
    CORS(app)
    app.wsgi_app = RequestIDMiddleware(app.wsgi_app)

    @app.errorhandler(SchedulingError)
    def handle_scheduling_error(e: SchedulingError):
        logger.info("request_failed", path=request.path, code=e.code, status=e.http_status)
        return jsonify(e.to_dict()), e.http_status

    @app.errorhandler(ValidationError)
    def handle_validation_error(e: ValidationError):
        details = [
            {"field": ".".join(str(part) for part in err["loc"]), "message": err["msg"]}
            for err in e.errors()
        ]
        return jsonify({
            "success": False,
            "error": "Invalid request",
            "code": "VALIDATION_ERROR",
            "details": details
        }), 400

    @app.errorhandler(BadRequest)
    def handle_bad_request(e: BadRequest):
        return jsonify({
            "success": False,
            "error": e.description,
            "code": "BAD_REQUEST"
        }), 400

    @app.route('/health', methods=['GET'])
    def health_check():
        """GET /health - Health check endpoint."""
        return jsonify({
            "success": True,
            "status": "healthy",
            "total_appointments": len(scheduler.gateway.appointments.read_lines()),
            "timestamp": scheduler.clock().isoformat()
        })

    @app.route('/dates', methods=['GET'])
    def open_dates():
        """GET /dates - Dates the booking calendars offer."""
        return jsonify({
            "success": True,
            "dates": [d.isoformat() for d in scheduler.open_dates()]
        })

    @app.route('/doctors/<doctor_id>/slots', methods=['GET'])
    def doctor_slots(doctor_id):
        """GET /doctors/D001/slots?date=2025-01-15 - A doctor's day as Past/Available/Taken."""
        day = _query_date()
        own_appointment_id = request.args.get("own_appointment_id") or None
        slots = scheduler.list_slots(doctor_id, day, own_appointment_id)
        return jsonify({
            "success": True,
            "doctor_id": doctor_id,
            "date": day.isoformat(),
            "slots": [s.to_dict() for s in slots]
        })

    @app.route('/slots/auto', methods=['GET'])
    def auto_slots():
        """GET /slots/auto?specialization=...&shift=...&date=... - Auto-assign preview."""
        specialization = _query_required("specialization")
        shift = _query_required("shift")
        day = _query_date()
        slots = scheduler.preview_auto(specialization, shift, day)
        return jsonify({
            "success": True,
            "date": day.isoformat(),
            "slots": [s.to_dict() for s in slots]
        })

    @app.route('/appointments', methods=['GET'])
    def list_appointments():
        """GET /appointments - Active appointments with effective status."""
        views = scheduler.list_appointments(
            patient_id=request.args.get("patient_id") or None,
            doctor_id=request.args.get("doctor_id") or None,
        )
        return jsonify({
            "success": True,
            "appointments": [v.to_dict() for v in views],
            "total": len(views)
        })

    @app.route('/appointments/<appointment_id>', methods=['GET'])
    def get_appointment(appointment_id):
        """GET /appointments/A48213 - One appointment."""
        view = scheduler.get_appointment(appointment_id)
        return jsonify({"success": True, "appointment": view.to_dict()})

    @app.route('/appointments', methods=['POST'])
    def create_appointment():
        """POST /appointments - Book with a doctor, or auto-assign.

        Request body:
        {
            "patient_id": "P001",
            "doctor_id": "D001",            (or "specialization" + "shift")
            "date": "2025-01-15",
            "time": "09:30",
            "actor": "frontdesk"
        }
        """
        req = BookRequest(**_body())
        if req.auto_assign:
            appointment = scheduler.book_auto(
                req.specialization, req.shift, req.date, req.time, req.patient_id, req.actor
            )
        else:
            appointment = scheduler.book(req.doctor_id, req.date, req.time, req.patient_id, req.actor)

        return jsonify({
            "success": True,
            "appointment_id": appointment.id,
            "appointment": appointment.to_dict()
        }), 201

    @app.route('/appointments/<appointment_id>/reschedule', methods=['PUT'])
    def reschedule_appointment(appointment_id):
        """PUT /appointments/A48213/reschedule - Move to another slot with the same doctor."""
        req = RescheduleRequest(**_body())
        appointment = scheduler.reschedule(appointment_id, req.date, req.time, req.actor)
        return jsonify({
            "success": True,
            "message": f"Appointment {appointment_id} has been rescheduled",
            "appointment": appointment.to_dict()
        })

    @app.route('/appointments/<appointment_id>', methods=['DELETE'])
    def delete_appointment(appointment_id):
        """DELETE /appointments/A48213?actor=frontdesk - Move to the archive."""
        actor = _query_required("actor")
        entry = scheduler.delete(appointment_id, actor)
        return jsonify({
            "success": True,
            "message": f"Appointment {appointment_id} has been deleted",
            "archived": entry.to_dict()
        })

    @app.route('/archive', methods=['GET'])
    def list_archive():
        """GET /archive - Deleted appointments, oldest first."""
        entries = scheduler.list_archived()
        return jsonify({
            "success": True,
            "archived": [e.to_dict() for e in entries],
            "total": len(entries)
        })

    @app.route('/archive/<ref>/restore', methods=['POST'])
    def restore_appointment(ref):
        """POST /archive/<ref>/restore - Bring an archived appointment back.

        Body: {"actor": "admin"} or, when the original slot is gone,
        {"actor": "admin", "date": "2025-01-20", "time": "10:00"}
        """
        req = RestoreRequest(**_body())
        appointment = scheduler.restore(ref, req.actor, req.date, req.time)
        return jsonify({
            "success": True,
            "appointment_id": appointment.id,
            "appointment": appointment.to_dict()
        }), 201

    return app
