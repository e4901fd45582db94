"""Tests for the sentinel registry and the error view."""

from __future__ import annotations

from preview_engine.kernel.error_view import render_error_view
from preview_engine.kernel.sentinels import (
    ADMIN_DASHBOARD,
    ELEARNING_PLATFORM,
    VITE_COUNTER,
    Sentinel,
    SentinelRegistry,
    contains_all,
    contains_any,
    default_registry,
)
from preview_engine.kernel.types import Framework


def test_default_registry_order() -> None:
    assert [s.name for s in default_registry()] == ["admin-dashboard", "elearning-platform", "vite-counter"]


def test_default_registry_is_fresh_each_time() -> None:
    registry = default_registry()
    registry.register(Sentinel(name="extra", predicate=lambda s: True, render=lambda s: ""))
    assert len(registry) == 4
    assert len(default_registry()) == 3


def test_admin_dashboard_markers() -> None:
    assert ADMIN_DASHBOARD.matches("<h1>Admin Dashboard</h1>", Framework.NEXTJS)
    assert ADMIN_DASHBOARD.matches('<div id="admin-dashboard" />', Framework.REACT)
    assert ADMIN_DASHBOARD.matches("import { BarChart, PieChart } from 'recharts' // admin", Framework.NEXTJS)
    assert not ADMIN_DASHBOARD.matches("import { BarChart } from 'recharts' // admin", Framework.NEXTJS)


def test_elearning_markers() -> None:
    assert ELEARNING_PLATFORM.matches("<HeroSection /><FeaturedCourses />", Framework.NEXTJS)
    assert not ELEARNING_PLATFORM.matches("<HeroSection />", Framework.NEXTJS)


def test_vite_counter_is_react_only() -> None:
    source = "const [count, setCount] = useState(0)"
    assert VITE_COUNTER.matches(source, Framework.REACT)
    assert not VITE_COUNTER.matches(source, Framework.NEXTJS)


def test_first_match_wins() -> None:
    registry = default_registry()
    source = "Admin Dashboard E-Learning Platform"
    assert registry.match(source, Framework.NEXTJS) is ADMIN_DASHBOARD


def test_register_first_takes_priority() -> None:
    override = Sentinel(name="override", predicate=contains_any("Admin"), render=lambda s: "<p>o</p>")
    registry = default_registry()
    registry.register(override, first=True)
    assert registry.match("Admin Dashboard", Framework.NEXTJS) is override


def test_no_match() -> None:
    assert SentinelRegistry().match("anything", Framework.NEXTJS) is None
    assert default_registry().match("<p>plain</p>", Framework.NEXTJS) is None


def test_predicate_helpers() -> None:
    assert contains_all("a", "b")("ab")
    assert not contains_all("a", "b")("a")
    assert contains_any("a", "b")("b")
    assert not contains_any("a", "b")("c")


def test_renders_are_deterministic() -> None:
    for sentinel in default_registry():
        assert sentinel.render("x") == sentinel.render("x")


# ---------------------------------------------------------------------------
# Error view
# ---------------------------------------------------------------------------


def test_error_view_is_complete_document_with_retry() -> None:
    html = render_error_view("Unexpected token '<'", "compile")
    assert html.startswith("<!DOCTYPE html>")
    assert "Compilation Error" in html
    assert 'data-action="retry"' in html
    # Raw error text is escaped, never interpreted
    assert "Unexpected token '&lt;'" in html


def test_error_view_headings_by_kind() -> None:
    assert "Preview Offline" in render_error_view("down", "transport")
    assert "Reconnect Required" in render_error_view("expired", "auth")
    assert "Compilation Error" in render_error_view("?", "unknown-kind")
