"""Development entry point: `python app.py` after `pip install -e .` (use a WSGI server in production)."""
from study_hall.main import create_app

app = create_app()

if __name__ == "__main__":
    app.run(debug=app.config["DEBUG"])
