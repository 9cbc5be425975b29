from __future__ import annotations


class TemplateValidationError(ValueError):
    """Raised when a recurrence rule is malformed."""


class TemplateNotFoundError(LookupError):
    def __init__(self, template_id: int, user_id: str) -> None:
        super().__init__(f"Recurring template {template_id} not found for user {user_id}")
        self.template_id = template_id
        self.user_id = user_id


class TemplateInactiveError(RuntimeError):
    def __init__(self, template_id: int) -> None:
        super().__init__(f"Recurring template {template_id} is inactive")
        self.template_id = template_id


class StaleTemplateError(RuntimeError):
    """The template was changed by someone else between read and commit."""

    def __init__(self, template_id: int | None) -> None:
        super().__init__(f"Recurring template {template_id} was modified concurrently")
        self.template_id = template_id
