"""Push boundaries to the automation engine."""

from flowsmith.boundary.base import PushBoundary, has_real_error
from flowsmith.boundary.cli import CliPushBoundary
from flowsmith.boundary.http import HttpPushBoundary

__all__ = ["PushBoundary", "CliPushBoundary", "HttpPushBoundary", "has_real_error"]
