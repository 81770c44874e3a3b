import atexit

from app import create_app, shutdown_app

app = create_app()
atexit.register(shutdown_app, app)

if __name__ == "__main__":
    app.run(host='0.0.0.0', port=5001)
