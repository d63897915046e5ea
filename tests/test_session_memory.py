from __future__ import annotations

from nanobanana.config import MAX_IMAGE_HISTORY
from nanobanana.session.memory import RequestPart, SessionContext, Turn, new_image_id

from conftest import make_record


def _context_with(count: int) -> SessionContext:
    context = SessionContext(session_id="s")
    for i in range(count):
        context.append(make_record(f"p{i}"))
    return context


def test_append_keeps_most_recent_ten() -> None:
    context = _context_with(13)

    assert len(context.media_history) == MAX_IMAGE_HISTORY
    assert [r.prompt for r in context.media_history] == [f"p{i}" for i in range(3, 13)]


def test_history_length_tracks_min_of_inserts_and_capacity() -> None:
    for count in (0, 1, 9, 10, 11, 25):
        assert len(_context_with(count).media_history) == min(count, MAX_IMAGE_HISTORY)


def test_lookup_last_returns_tail() -> None:
    context = _context_with(3)
    assert context.lookup("last").prompt == "p2"


def test_lookup_last_on_empty_history_is_none() -> None:
    assert SessionContext(session_id="s").lookup("last") is None


def test_lookup_history_index_is_zero_based() -> None:
    context = _context_with(3)
    assert context.lookup("history:0").prompt == "p0"
    assert context.lookup("history:2").prompt == "p2"


def test_lookup_out_of_range_or_malformed_is_none() -> None:
    context = _context_with(3)
    for reference in ("history:3", "history:-1", "history:abc", "history:", "History:0", "./last"):
        assert context.lookup(reference) is None


def test_lookup_after_eviction_uses_retained_order() -> None:
    context = _context_with(12)
    assert context.lookup("history:0").prompt == "p2"


def test_recent_images_returns_tail_in_order() -> None:
    context = _context_with(5)
    assert [r.prompt for r in context.recent_images(3)] == ["p2", "p3", "p4"]
    assert context.recent_images(0) == []


def test_transcript_unbounded_by_default() -> None:
    context = SessionContext(session_id="s")
    for i in range(50):
        context.add_turn(Turn(role="user", parts=[RequestPart.from_text(str(i))]))
    assert len(context.transcript) == 50


def test_transcript_capacity_drops_oldest_turns() -> None:
    context = SessionContext(session_id="s", max_transcript_turns=4)
    for i in range(6):
        context.add_turn(Turn(role="user", parts=[RequestPart.from_text(str(i))]))
    assert [t.parts[0].text for t in context.transcript] == ["2", "3", "4", "5"]


def test_image_ids_are_unique() -> None:
    ids = {new_image_id() for _ in range(500)}
    assert len(ids) == 500
    assert all(i.startswith("img_") for i in ids)
