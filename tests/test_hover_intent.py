from __future__ import annotations

import pytest

from core.domain.models import AnnotationKind, HoverState, LinkHandle, ResolutionState
from core.services.resolution_cache import encode_component

LINK_A = LinkHandle(element_id=0, href="http://bit.ly/abc123")
LINK_B = LinkHandle(element_id=1, href="http://bit.ly/other")

SUCCESS_A = {"long-url": "http://example.org/page", "title": "Example"}
SUCCESS_B = {"long-url": "http://example.org/b"}


@pytest.fixture
def hover(runtime, transport):
    transport.route(encode_component(LINK_A.href), SUCCESS_A)
    transport.route(encode_component(LINK_B.href), SUCCESS_B)
    runtime.hover.attach(LINK_A)
    runtime.hover.attach(LINK_B)
    return runtime.hover


def confirm(hover, scheduler, link, x=100.0, y=100.0):
    hover.pointer_enter(link.element_id, x, y)
    hover.pointer_move(link.element_id, x + 2, y + 1)
    scheduler.advance(0.1)
    assert hover.state_of(link.element_id) is HoverState.CONFIRMED


def test_small_displacement_confirms_and_shows_resolution(hover, scheduler, surface, transport):
    hover.pointer_enter(0, 100, 100)
    scheduler.advance(0.05)
    hover.pointer_move(0, 103, 100)

    assert hover.state_of(0) is HoverState.TRACKING
    scheduler.advance(0.05)

    assert hover.state_of(0) is HoverState.CONFIRMED
    assert hover.active.confirmed_at is not None
    assert surface.visible
    assert surface.content.kind is AnnotationKind.PLACEHOLDER
    assert surface.text == "Expanding..."
    assert (surface.x, surface.y) == (103, 115)

    scheduler.run_tasks()

    assert transport.count("expand?") == 1
    assert surface.content.title == "Example"
    assert surface.text == "Example\nhttp://example.org/page [more]"
    assert surface.html == (
        '<strong style="font-weight: bold;">Example</strong><br />'
        "http://example.org/page "
        '<a href="http://longurl.org/expand?url=http%3A%2F%2Fbit.ly%2Fabc123&amp;src=lme_gm" '
        'title="Get more information about this link" style="color:#00f;">[more]</a>'
    )
    # Content refresh keeps the position.
    assert (surface.x, surface.y) == (103, 115)


def test_large_displacement_keeps_tracking_without_fetching(hover, scheduler, surface):
    hover.pointer_enter(0, 0, 0)
    hover.pointer_move(0, 50, 0)
    scheduler.advance(0.1)

    assert hover.state_of(0) is HoverState.TRACKING
    assert scheduler.tasks == []
    assert not surface.visible

    hover.pointer_move(0, 50, 40)
    scheduler.advance(0.1)
    assert hover.state_of(0) is HoverState.TRACKING

    # Pointer settles: the next sample confirms.
    scheduler.advance(0.1)
    assert hover.state_of(0) is HoverState.CONFIRMED


def test_threshold_is_combined_absolute_delta(hover, scheduler):
    hover.pointer_enter(0, 10, 10)
    hover.pointer_move(0, 6, 13)
    scheduler.advance(0.1)

    assert hover.state_of(0) is HoverState.TRACKING


def test_leaving_while_tracking_returns_to_idle(hover, scheduler, surface):
    hover.pointer_enter(0, 0, 0)
    hover.pointer_leave(0)
    scheduler.advance(1)

    assert hover.state_of(0) is HoverState.IDLE
    assert scheduler.tasks == []
    assert surface.history == []


def test_cached_value_is_shown_immediately(hover, scheduler, surface):
    confirm(hover, scheduler, LINK_A)
    scheduler.run_tasks()
    hover.pointer_leave(0)
    scheduler.advance(0.6)
    assert not surface.visible

    confirm(hover, scheduler, LINK_A)

    assert surface.content.long_url == "http://example.org/page"
    assert scheduler.tasks == []


def test_error_is_shown_and_cached(runtime, hover, scheduler, surface, transport):
    transport.route(encode_component(LINK_A.href), {"messages": [{"message": "Invalid URL"}]})
    confirm(hover, scheduler, LINK_A)
    scheduler.run_tasks()

    assert surface.text == "LongURL Error: Invalid URL"
    assert runtime.cache.entry(LINK_A.href).state is ResolutionState.FAILED

    hover.pointer_leave(0)
    scheduler.advance(0.6)
    confirm(hover, scheduler, LINK_A)

    assert surface.text == "LongURL Error: Invalid URL"
    assert transport.count("expand?") == 1


def test_leave_then_reenter_within_timeout_keeps_annotation(hover, scheduler, surface):
    confirm(hover, scheduler, LINK_A)
    scheduler.run_tasks()
    changes = len(surface.history)

    hover.pointer_leave(0)
    assert hover.state_of(0) is HoverState.DISMISSING
    scheduler.advance(0.4)
    hover.pointer_enter(0, 100, 100)

    assert hover.state_of(0) is HoverState.CONFIRMED
    scheduler.advance(2)
    assert surface.visible
    assert len(surface.history) == changes


def test_dismiss_timer_hides_annotation(hover, scheduler, surface):
    confirm(hover, scheduler, LINK_A)
    hover.pointer_leave(0)
    scheduler.advance(0.59)
    assert surface.visible

    scheduler.advance(0.01)

    assert not surface.visible
    assert hover.state_of(0) is HoverState.IDLE
    assert hover.active is None


def test_moving_onto_the_surface_keeps_it_open(hover, scheduler, surface):
    confirm(hover, scheduler, LINK_A)
    hover.pointer_leave(0)
    hover.surface_enter()
    scheduler.advance(2)

    assert surface.visible
    assert hover.state_of(0) is HoverState.CONFIRMED

    hover.surface_leave()
    scheduler.advance(0.6)
    assert not surface.visible


def test_late_result_for_superseded_link_is_discarded(runtime, hover, scheduler, surface):
    confirm(hover, scheduler, LINK_A, 10, 10)
    hover.pointer_leave(0)
    confirm(hover, scheduler, LINK_B, 200, 10)

    assert hover.state_of(0) is HoverState.IDLE
    assert len(scheduler.tasks) == 2

    scheduler.run_next()  # A settles first
    assert surface.content.kind is AnnotationKind.PLACEHOLDER
    assert runtime.cache.entry(LINK_A.href).state is ResolutionState.RESOLVED

    scheduler.run_next()
    assert surface.content.long_url == "http://example.org/b"
    assert (surface.x, surface.y) == (202, 26)


def test_result_after_dismissal_does_not_reopen_surface(runtime, hover, scheduler, surface):
    confirm(hover, scheduler, LINK_A)
    hover.pointer_leave(0)
    scheduler.advance(0.6)

    scheduler.run_tasks()

    assert not surface.visible
    assert surface.history[-1].action == "hide"
    assert runtime.cache.entry(LINK_A.href).state is ResolutionState.RESOLVED


def test_entering_another_link_drops_previous_tracking(hover, scheduler):
    hover.pointer_enter(0, 0, 0)
    hover.pointer_enter(1, 300, 0)
    scheduler.advance(0.1)

    assert hover.state_of(0) is HoverState.IDLE
    assert hover.state_of(1) is HoverState.CONFIRMED
    assert len(scheduler.tasks) == 1


def test_events_for_unattached_elements_are_ignored(hover, scheduler, surface):
    hover.pointer_enter(99, 0, 0)
    scheduler.advance(1)

    assert hover.state_of(99) is HoverState.IDLE
    assert hover.tracking is None
    assert surface.history == []
