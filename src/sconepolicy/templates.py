"""
Strict rendering of policy templates.

Templates use ``{{name}}`` placeholders and nothing else: ``{%`` and ``{#``
are plain text, and no global names exist. Rendering fails on any name
that is not bound, so a document with a blank MRENCLAVE or secret is never
submitted.
"""

from typing import Mapping, Union

from jinja2 import Environment, StrictUndefined, TemplateSyntaxError, UndefinedError

from sconepolicy.errors import TemplateError
from sconepolicy.state import PolicyState

Binding = Union[str, int]

# Renders the predecessor line as a YAML comment.
NO_PREDECESSOR = "#"
PREDECESSOR_KEY = "predecessor"

# Statement and comment delimiters that cannot occur in a YAML policy.
_BLOCK_DELIMITERS = ("\x00%", "%\x00")
_COMMENT_DELIMITERS = ("\x00#", "#\x00")


def build_bindings(
    state: PolicyState,
    predecessor_key: str = NO_PREDECESSOR,
    predecessor: str = "",
) -> dict[str, Binding]:
    """
    Binding map for one session document.

    Args:
        state: Current state; every field becomes a binding.
        predecessor_key: ``NO_PREDECESSOR`` or ``PREDECESSOR_KEY``.
        predecessor: Hash of the session being replaced, or "".
    """
    bindings: dict[str, Binding] = dict(state.model_dump())
    bindings["predecessor_key"] = predecessor_key
    bindings["predecessor"] = predecessor
    return bindings


class TemplateRenderer:
    """Renders templates with undefined names treated as errors."""

    def __init__(self):
        self._env = Environment(
            undefined=StrictUndefined,
            autoescape=False,
            keep_trailing_newline=True,
            block_start_string=_BLOCK_DELIMITERS[0],
            block_end_string=_BLOCK_DELIMITERS[1],
            comment_start_string=_COMMENT_DELIMITERS[0],
            comment_end_string=_COMMENT_DELIMITERS[1],
        )
        self._env.globals.clear()

    def render(self, template: str, bindings: Mapping[str, Binding]) -> str:
        try:
            return self._env.from_string(template).render(**bindings)
        except UndefinedError as e:
            raise TemplateError(f"Template references an undefined field: {e}") from e
        except TemplateSyntaxError as e:
            raise TemplateError(
                f"Template syntax error on line {e.lineno}: {e.message}"
            ) from e
