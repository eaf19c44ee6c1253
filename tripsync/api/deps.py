"""FastAPI dependencies."""

from tripsync.config import get_settings
from tripsync.session import PlannerSession

# Process-wide session for the single-user planner surface
_planner_session: PlannerSession | None = None


def get_planner_session() -> PlannerSession:
    """Get the planner session, opening it on first use."""
    global _planner_session
    if _planner_session is None:
        _planner_session = PlannerSession.open(get_settings())
    return _planner_session


def close_planner_session() -> None:
    """Flush and drop the process-wide session."""
    global _planner_session
    if _planner_session is not None:
        _planner_session.close()
        _planner_session = None
