"""ASGI entrypoint for the nutrition aggregator API."""

from nutrition_aggregator.api.app import create_app
from nutrition_aggregator.containers import build_container

app = create_app(build_container())
