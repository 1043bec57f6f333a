from codecollab import create_app
from codecollab.socketio_app import socketio
import os

app = create_app()

if __name__ == "__main__":
    # Must bind to 0.0.0.0 for Docker
    socketio.run(
        app,
        host='0.0.0.0',  # Listen on all interfaces
        port=int(os.getenv('PORT', '8000')),
        debug=os.getenv('DEBUG', 'False').lower() == 'true',
        allow_unsafe_werkzeug=True
    )
