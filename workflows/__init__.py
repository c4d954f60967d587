"""Workflow definitions module."""

from workflows.notification_workflow import NotificationWorkflow

__all__ = ["NotificationWorkflow"]
