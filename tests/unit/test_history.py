from __future__ import annotations

from shield_portal.client.history import NotificationHistory
from shield_portal.infrastructure.ws.protocol import NotificationPayload


def _note(i: int) -> NotificationPayload:
    return NotificationPayload(title=f"n{i}", message="m", timestamp=i)


def test_history_is_capped_and_most_recent_first():
    history = NotificationHistory()
    for i in range(25):
        history.push(_note(i))

    assert len(history) == 20
    assert [n.title for n in history] == [f"n{i}" for i in range(24, 4, -1)]


def test_clear_empties_history():
    history = NotificationHistory(limit=3)
    history.push(_note(1))

    history.clear()

    assert history.items() == []
