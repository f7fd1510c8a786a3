"""Error taxonomy for the intake engine.

Exceptions subclass ``ValueError`` where the server layer should map them
through its message-pattern handler (404/409/400), and ``RuntimeError``
where the failure comes from an external collaborator.

    DefinitionError      malformed form definition, raised at load time
    VersionMismatchError answers captured against another form version
    SessionStateError    input rejected because of the session's state
    AnalysisFailure      the external analysis call failed (retryable)

Per-field validation problems are *not* exceptions: the form engine returns
them as a list of :class:`neuro_intake.models.form.ValidationFailure`.
"""

from __future__ import annotations


class DefinitionError(ValueError):
    """A form definition is malformed (duplicate id, bad visible_if reference...)."""

    def __init__(self, form_id: str, message: str) -> None:
        self.form_id = form_id
        super().__init__(f"Invalid form definition '{form_id}': {message}")


class VersionMismatchError(ValueError):
    """Answers captured against one form version were evaluated under another."""

    def __init__(self, form_id: str, expected: str, actual: str) -> None:
        self.form_id = form_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Form version mismatch for '{form_id}': "
            f"definition is {expected!r}, answers were captured against {actual!r}"
        )


class SessionStateError(ValueError):
    """Input submitted while the session cannot accept it.

    Raised synchronously when a session is terminal, a turn or analysis is
    already outstanding, or an analysis is requested before the dialogue
    has offered one.
    """


class AnalysisFailure(RuntimeError):
    """The external analysis call failed or returned a malformed response.

    The session is left exactly as it was before the call, so the caller
    can retry from ``last_step`` without re-asking answered questions.
    """

    def __init__(self, session_id: str, last_step: int, reason: str) -> None:
        self.session_id = session_id
        self.last_step = last_step
        self.reason = reason
        super().__init__(
            f"Analysis failed for session {session_id} at step {last_step}: {reason}"
        )
