"""Errors raised while loading policy rules."""

from typing import Optional


class PolicyConfigError(Exception):
    """Raised when a policy rule or rule set is malformed.

    These errors are fatal: they are raised while rules are loaded, before
    any resource is evaluated.
    """

    def __init__(
        self,
        message: str,
        rule_id: Optional[str] = None,
        source: Optional[str] = None,
    ):
        self.message = message
        self.rule_id = rule_id
        self.source = source
        super().__init__(self._format())

    def _format(self) -> str:
        context = []
        if self.source:
            context.append(self.source)
        if self.rule_id:
            context.append(f"rule {self.rule_id}")
        if context:
            return f"{': '.join(context)}: {self.message}"
        return self.message
