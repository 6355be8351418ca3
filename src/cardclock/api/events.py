from flask import Blueprint, Response
from cardclock.events import reader_event_stream
from cardclock.shared.logger import app_logger
import json
from queue import Empty

bp = Blueprint('live_events', __name__, url_prefix='/')

@bp.route('/live-events')
def live_events():
    """
    SSE endpoint for scan outcomes, connection changes and transient notifications.
    Each event is named after its type so the UI can listen per type.
    """
    def event_stream():
        subscriber_queue = reader_event_stream.subscribe()

        try:
            yield "event: connected\ndata: Connection established\n\n"
            app_logger.info("[SSE] Client connected to /live-events")

            while True:
                try:
                    data = subscriber_queue.get(timeout=5)
                    event_type = json.loads(data).get("type", "message")
                    yield f"event: {event_type}\ndata: {data}\n\n"
                except Empty:
                    # Heartbeat while idle
                    yield "event: heartbeat\ndata: ping\n\n"
        except GeneratorExit:
            app_logger.info("[SSE] Client disconnected from /live-events")
            reader_event_stream.unsubscribe(subscriber_queue)
        except Exception as e:
            app_logger.error(f"[SSE] Error in event stream: {e}")
            reader_event_stream.unsubscribe(subscriber_queue)

    return Response(event_stream(), mimetype="text/event-stream")
