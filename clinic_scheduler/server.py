"""Run the scheduler HTTP API.

Run with: clinic-scheduler   (or python -m clinic_scheduler.server)

Settings come from the environment / .env (see config.load_settings).
"""
from clinic_scheduler import config
from clinic_scheduler.api.app import create_app
from clinic_scheduler.config import Settings, load_settings
from clinic_scheduler.logging_config import get_logger, setup_structured_logging
from clinic_scheduler.scheduler import ClinicScheduler

logger = get_logger(__name__)


def print_startup_info(settings: Settings, doctor_count: int):
    """Print server startup information."""
    print("=" * 70)
    print("CLINIC SCHEDULER API")
    print("=" * 70)
    print(f"\nServer: http://localhost:{settings.api_port}")
    print(f"Data directory: {settings.data_dir.resolve()}")
    print(f"Doctors on file: {doctor_count}")

    print("\nShifts:")
    for code, window in config.SHIFT_WINDOWS.items():
        print(f"   {code}: {window['start_time']} - {window['end_time']}")
    print(f"   Slots: {config.SLOT_DURATION_MINUTES} minutes each, "
          f"bookable up to {config.BOOKING_HORIZON_DAYS} days ahead")

    print("\nEndpoints:")
    print("   GET    /doctors/<id>/slots?date=...        - Doctor calendar")
    print("   GET    /slots/auto?specialization=&shift=&date= - Auto-assign calendar")
    print("   GET    /dates                              - Bookable dates")
    print("   POST   /appointments                       - Book (explicit or auto-assign)")
    print("   GET    /appointments[/<id>]                - Appointments")
    print("   PUT    /appointments/<id>/reschedule       - Reschedule")
    print("   DELETE /appointments/<id>?actor=...        - Delete (archive)")
    print("   GET    /archive                            - Deleted appointments")
    print("   POST   /archive/<ref>/restore              - Restore")
    print("   GET    /health                             - Health check")

    print("\nServer ready! Waiting for requests...")
    print("=" * 70)


def main():
    settings = load_settings()
    setup_structured_logging(settings.log_level, settings.json_logs)

    scheduler = ClinicScheduler.from_settings(settings)
    app = create_app(scheduler)

    print_startup_info(settings, len(scheduler.doctors.all()))
    logger.info("server_starting", host=settings.api_host, port=settings.api_port,
                data_dir=str(settings.data_dir))
    app.run(host=settings.api_host, port=settings.api_port)


if __name__ == '__main__':
    main()
