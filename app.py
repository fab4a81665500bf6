"""WSGI entry point: ``flask --app app run`` / ``flask --app app reconcile``."""

from src.pkl_attendance.pkl_attendance.main import create_app

app = create_app()

if __name__ == "__main__":
    app.run(debug=app.config["DEBUG"])
