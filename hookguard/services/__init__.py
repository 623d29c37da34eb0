from .intake import IntakeGuard, EventNotFoundError, build_intake_guard

__all__ = ["IntakeGuard", "EventNotFoundError", "build_intake_guard"]
