"""Test configuration and fixtures."""

from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Sequence, Tuple

import pytest

from memoir_engine.memory.schemas import Session, Turn


BASE_TIME = datetime(2024, 3, 1, 15, 0, tzinfo=timezone.utc)


def build_session(
    session_id: str,
    turns: Sequence[Tuple[str, str]] = (),
    handle: Optional[str] = "margaret",
    day: int = 0,
    title: Optional[str] = None,
) -> Session:
    """Session created ``day`` days after BASE_TIME, one minute per turn."""
    created = BASE_TIME + timedelta(days=day)
    return Session(
        id=session_id,
        user_handle=handle,
        title=title,
        created_at=created,
        turns=[
            Turn(role=role, text=text, created_at=created + timedelta(minutes=index))
            for index, (role, text) in enumerate(turns)
        ],
    )


@pytest.fixture
def base_time() -> datetime:
    return BASE_TIME


@pytest.fixture
def session_factory() -> Callable[..., Session]:
    """Factory for sessions: session_factory("s1", [("user", "...")], day=2)."""
    return build_session


@pytest.fixture
def farm_sessions() -> List[Session]:
    """
    One finished session about a farm childhood plus an empty current session.

    Returned newest first, the order the session cache hands out.
    """
    prior = build_session(
        "s1",
        [
            ("assistant", "Welcome! Where did you grow up?"),
            ("user", "She grew up on a farm."),
            ("assistant", "What was the farm like?"),
            ("user", "Muddy."),
        ],
        day=0,
    )
    current = build_session("s2", [], day=1)
    return [current, prior]
