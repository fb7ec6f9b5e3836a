"""Reflex configuration for the lawsuit processes dashboard."""

import reflex as rx

config = rx.Config(
    app_name="processes_dashboard",
    plugins=[rx.plugins.SitemapPlugin()],
)
