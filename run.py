from courtqueue import create_app, socketio
from courtqueue.services.queue.supervisor import start_supervisors

app = create_app()

if __name__ == '__main__':
    # Supervisors run beside the Socket.IO server in the same process
    start_supervisors(app)
    socketio.run(app, debug=True, use_reloader=False)
