"""Aggregate model imports for Alembic auto-detection."""

from clientdesk.models.client import Client  # noqa: F401
from clientdesk.models.invoice import Invoice  # noqa: F401
from clientdesk.models.component import Component  # noqa: F401
from clientdesk.models.progress_step import ProgressStep, StepComment  # noqa: F401
from clientdesk.models.client_file import ClientFile, ClientLink  # noqa: F401
