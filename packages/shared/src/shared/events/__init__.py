from shared.events.schema import EventEnvelope, build_event_envelope

__all__ = ["EventEnvelope", "build_event_envelope"]
