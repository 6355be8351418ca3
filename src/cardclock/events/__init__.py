from cardclock.events.event_stream import EventStream, EventType, reader_event_stream

__all__ = ["EventStream", "EventType", "reader_event_stream"]
