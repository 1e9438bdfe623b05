"""Dashboard application entrypoints."""

from apps.dashboard.tui import TrackerDashboard, run_dashboard_async

__all__ = [
    "TrackerDashboard",      # Textual TUI
    "run_dashboard_async",   # Run TUI on the current loop
]
