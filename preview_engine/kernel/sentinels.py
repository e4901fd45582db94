"""
Preview Kernel — Sentinel registry

Some starter templates lean on charts, data fetching or child components
that a textual JSX transform renders as an empty shell. For those, a
sentinel (a set of characteristic substrings in the page source) selects a
richer static mock instead.

Registering a new special case means adding a Sentinel to a registry; the
compilers never change.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass, field

import chevron

from preview_engine.kernel.types import Framework

Predicate = Callable[[str], bool]
StaticRenderer = Callable[[str], str]


@dataclass(frozen=True)
class Sentinel:
    """A predicate over page source paired with the body it renders instead."""

    name: str
    predicate: Predicate
    render: StaticRenderer
    frameworks: frozenset[Framework] = field(default_factory=lambda: frozenset({Framework.NEXTJS, Framework.REACT}))

    def matches(self, source: str, framework: Framework) -> bool:
        return framework in self.frameworks and self.predicate(source)


class SentinelRegistry:
    """Ordered sentinels; the first match wins."""

    def __init__(self, sentinels: Iterable[Sentinel] = ()):
        self._sentinels: list[Sentinel] = list(sentinels)

    def register(self, sentinel: Sentinel, *, first: bool = False) -> None:
        if first:
            self._sentinels.insert(0, sentinel)
        else:
            self._sentinels.append(sentinel)

    def match(self, source: str, framework: Framework) -> Sentinel | None:
        for sentinel in self._sentinels:
            if sentinel.matches(source, framework):
                return sentinel
        return None

    def __iter__(self) -> Iterator[Sentinel]:
        return iter(self._sentinels)

    def __len__(self) -> int:
        return len(self._sentinels)


def contains_any(*markers: str) -> Predicate:
    return lambda source: any(m in source for m in markers)


def contains_all(*markers: str) -> Predicate:
    return lambda source: all(m in source for m in markers)


def either(*predicates: Predicate) -> Predicate:
    return lambda source: any(p(source) for p in predicates)


# ---------------------------------------------------------------------------
# Admin dashboard
# ---------------------------------------------------------------------------

_ADMIN_TEMPLATE = """<div class="min-h-screen bg-gray-50 p-6">
  <div class="max-w-7xl mx-auto">
    <div class="mb-8">
      <h1 class="text-3xl font-bold text-gray-900">Admin Dashboard</h1>
      <p class="text-gray-600 mt-2">Welcome to your dashboard overview</p>
    </div>
    <div class="grid grid-cols-1 md:grid-cols-4 gap-6 mb-8">
      {{#stats}}
      <div class="bg-white rounded-lg border shadow-sm p-6">
        <div class="flex items-center">
          <div class="p-2 bg-{{color}}-100 rounded-lg"><div class="w-6 h-6 bg-{{color}}-400 rounded"></div></div>
          <div class="ml-4">
            <p class="text-2xl font-bold text-gray-900">{{value}}</p>
            <p class="text-sm text-gray-600">{{label}}</p>
          </div>
        </div>
      </div>
      {{/stats}}
    </div>
    <div class="grid grid-cols-1 lg:grid-cols-2 gap-6 mb-8">
      {{#charts}}
      <div class="bg-white rounded-lg border shadow-sm p-6">
        <h3 class="text-lg font-semibold text-gray-900 mb-4">{{title}}</h3>
        <div class="h-64 bg-gradient-to-r from-{{color}}-50 to-{{color}}-100 rounded-lg flex items-center justify-center">
          <div class="text-center">
            <p class="text-{{color}}-600 font-medium">{{caption}}</p>
            <p class="text-sm text-{{color}}-500">{{detail}}</p>
          </div>
        </div>
      </div>
      {{/charts}}
    </div>
    <div class="bg-white rounded-lg border shadow-sm">
      <div class="p-6 border-b"><h3 class="text-lg font-semibold text-gray-900">Recent Activity</h3></div>
      <div class="divide-y">
        {{#activity}}
        <div class="p-6 flex items-center justify-between">
          <div class="flex items-center">
            <div class="w-10 h-10 bg-{{color}}-100 rounded-full flex items-center justify-center">
              <span class="text-{{color}}-600 font-semibold">{{initials}}</span>
            </div>
            <div class="ml-4">
              <p class="font-medium text-gray-900">{{name}}</p>
              <p class="text-sm text-gray-600">{{action}}</p>
            </div>
          </div>
          <span class="text-sm text-gray-500">{{when}}</span>
        </div>
        {{/activity}}
      </div>
    </div>
  </div>
</div>"""

_ADMIN_DATA = {
    "stats": [
        {"label": "Total Users", "value": "2,543", "color": "blue"},
        {"label": "Revenue", "value": "$45,231", "color": "green"},
        {"label": "Orders", "value": "1,245", "color": "purple"},
        {"label": "Growth", "value": "12.5%", "color": "orange"},
    ],
    "charts": [
        {"title": "Revenue Overview", "caption": "Interactive Chart", "detail": "Revenue trends", "color": "blue"},
        {"title": "User Activity", "caption": "Analytics Chart", "detail": "User engagement", "color": "green"},
    ],
    "activity": [
        {
            "initials": "JD",
            "name": "John Doe",
            "action": "Updated profile information",
            "when": "2 minutes ago",
            "color": "blue",
        },
        {
            "initials": "SM",
            "name": "Sarah Miller",
            "action": "Completed purchase",
            "when": "5 minutes ago",
            "color": "green",
        },
    ],
}


def render_admin_dashboard(source: str) -> str:
    return chevron.render(_ADMIN_TEMPLATE, _ADMIN_DATA)


ADMIN_DASHBOARD = Sentinel(
    name="admin-dashboard",
    predicate=either(
        contains_any("Admin Dashboard", "admin-dashboard"),
        contains_all("BarChart", "PieChart", "admin"),
    ),
    render=render_admin_dashboard,
)

# ---------------------------------------------------------------------------
# E-learning platform
# ---------------------------------------------------------------------------

_ELEARNING_TEMPLATE = """<div class="flex flex-col">
  <section class="bg-gradient-to-r from-blue-600 to-indigo-700 text-white py-20">
    <div class="container mx-auto px-4 text-center">
      <h1 class="text-4xl md:text-5xl font-bold mb-4">E-Learning Platform</h1>
      <p class="text-xl text-blue-100 mb-8 max-w-2xl mx-auto">Join thousands of students learning from expert instructors.</p>
      <a href="#courses" class="bg-white text-blue-700 font-semibold px-6 py-3 rounded-lg">Browse Courses</a>
    </div>
  </section>
  <section class="py-12 bg-white">
    <div class="container mx-auto px-4 grid grid-cols-2 md:grid-cols-4 gap-6 text-center">
      {{#stats}}
      <div><p class="text-3xl font-bold text-gray-900">{{value}}</p><p class="text-gray-600">{{label}}</p></div>
      {{/stats}}
    </div>
  </section>
  <section id="courses" class="py-16 bg-gray-50">
    <div class="container mx-auto px-4">
      <div class="text-center mb-12">
        <h2 class="text-3xl md:text-4xl font-bold text-gray-900 mb-4">Featured Courses</h2>
        <p class="text-lg text-gray-600 max-w-2xl mx-auto">Discover our most popular and highly-rated courses across various categories</p>
      </div>
      <div class="grid grid-cols-1 md:grid-cols-3 gap-6">
        {{#courses}}
        <div class="bg-white rounded-lg shadow-md overflow-hidden">
          <div class="h-40 bg-gradient-to-br from-{{color}}-400 to-{{color}}-600"></div>
          <div class="p-6">
            <span class="text-xs font-medium text-{{color}}-700 bg-{{color}}-100 px-2 py-1 rounded">{{category}}</span>
            <h3 class="font-semibold text-lg mt-3 mb-1">{{title}}</h3>
            <p class="text-sm text-gray-600">{{instructor}}</p>
            <p class="mt-4 font-bold text-gray-900">{{price}}</p>
          </div>
        </div>
        {{/courses}}
      </div>
    </div>
  </section>
  <section class="py-16 bg-blue-700 text-white text-center">
    <h2 class="text-3xl font-bold mb-4">Start learning today</h2>
    <a href="#" class="bg-white text-blue-700 font-semibold px-6 py-3 rounded-lg">Get Started</a>
  </section>
</div>"""

_ELEARNING_DATA = {
    "stats": [
        {"value": "10K+", "label": "Students"},
        {"value": "500+", "label": "Courses"},
        {"value": "120+", "label": "Instructors"},
        {"value": "4.8", "label": "Average Rating"},
    ],
    "courses": [
        {
            "title": "Modern Web Development",
            "category": "Development",
            "instructor": "Alex Johnson",
            "price": "$49",
            "color": "blue",
        },
        {
            "title": "Data Science Fundamentals",
            "category": "Data",
            "instructor": "Maria Garcia",
            "price": "$59",
            "color": "green",
        },
        {
            "title": "UI/UX Design Essentials",
            "category": "Design",
            "instructor": "Chris Lee",
            "price": "$39",
            "color": "purple",
        },
    ],
}


def render_elearning(source: str) -> str:
    return chevron.render(_ELEARNING_TEMPLATE, _ELEARNING_DATA)


ELEARNING_PLATFORM = Sentinel(
    name="elearning-platform",
    predicate=either(
        contains_any("E-Learning Platform"),
        contains_all("HeroSection", "FeaturedCourses"),
    ),
    render=render_elearning,
)

# ---------------------------------------------------------------------------
# Vite counter starter
# ---------------------------------------------------------------------------

_COUNTER_TEMPLATE = """<div class="min-h-screen bg-gray-100 flex items-center justify-center">
  <div class="bg-white p-8 rounded-lg shadow-md">
    <h1 class="text-3xl font-bold text-gray-900 mb-4">{{heading}}</h1>
    <div class="card">
      <button class="bg-blue-500 hover:bg-blue-700 text-white font-bold py-2 px-4 rounded">count is 0</button>
    </div>
  </div>
</div>"""


def render_counter(source: str) -> str:
    return chevron.render(_COUNTER_TEMPLATE, {"heading": "Welcome to React"})


VITE_COUNTER = Sentinel(
    name="vite-counter",
    predicate=contains_all("useState", "count"),
    render=render_counter,
    frameworks=frozenset({Framework.REACT}),
)


def default_registry() -> SentinelRegistry:
    """A fresh registry with the built-in sentinels, in priority order."""
    return SentinelRegistry([ADMIN_DASHBOARD, ELEARNING_PLATFORM, VITE_COUNTER])
