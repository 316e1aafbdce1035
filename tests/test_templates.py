"""
Unit tests for strict template rendering and the built-in policies.
"""

import pytest

from sconepolicy.errors import TemplateError
from sconepolicy.policies import COSIGN_POLICIES, OTP_POLICIES
from sconepolicy.state import PolicyState
from sconepolicy.templates import (
    NO_PREDECESSOR,
    PREDECESSOR_KEY,
    TemplateRenderer,
    build_bindings,
)


@pytest.fixture
def state():
    return PolicyState.initial().model_copy(update={"mrenclave": "b" * 64})


@pytest.fixture
def renderer():
    return TemplateRenderer()


class TestBindings:
    def test_contains_every_state_field(self, state):
        bindings = build_bindings(state)
        for field_name in PolicyState.model_fields:
            assert field_name in bindings

    def test_defaults_to_no_predecessor(self, state):
        bindings = build_bindings(state)
        assert bindings["predecessor_key"] == NO_PREDECESSOR
        assert bindings["predecessor"] == ""

    def test_predecessor(self, state):
        bindings = build_bindings(state, PREDECESSOR_KEY, "cafe")
        assert bindings["predecessor_key"] == "predecessor"
        assert bindings["predecessor"] == "cafe"


class TestRenderer:
    def test_undefined_field_fails(self, renderer, state):
        with pytest.raises(TemplateError, match="undefined"):
            renderer.render("name: {{no_such_field}}", build_bindings(state))

    def test_undefined_field_fails_even_with_other_fields(self, renderer):
        with pytest.raises(TemplateError):
            renderer.render("{{a}} {{b}}", {"a": "x"})

    def test_syntax_error_fails(self, renderer, state):
        with pytest.raises(TemplateError, match="syntax"):
            renderer.render("name: {{namespace", build_bindings(state))

    @pytest.mark.parametrize(
        "name", ["range", "dict", "lipsum", "cycler", "joiner", "namespace"]
    )
    def test_unbound_builtin_name_fails(self, renderer, name):
        bindings = build_bindings(PolicyState.initial())
        bindings.pop(name, None)
        with pytest.raises(TemplateError, match="undefined"):
            renderer.render(f"value: {{{{{name}}}}}", bindings)

    def test_jinja_comment_and_block_markers_are_text(self, renderer):
        template = "a: {#x}\nb: {{v}} #}\nc: {% if x %}\n"
        assert renderer.render(template, {"v": "y"}) == "a: {#x}\nb: y #}\nc: {% if x %}\n"

    def test_renders_values(self, renderer):
        assert renderer.render("v{{volume_version}}: {{x}}\n", {"volume_version": 2, "x": "y"}) == "v2: y\n"

    def test_no_predecessor_renders_comment_line(self, renderer, state):
        doc = renderer.render(OTP_POLICIES.namespace, build_bindings(state))
        assert "\n#: \n" in doc
        assert f"name: {state.namespace}\n" in doc

    def test_predecessor_line(self, renderer, state):
        doc = renderer.render(
            OTP_POLICIES.namespace, build_bindings(state, PREDECESSOR_KEY, "cafe")
        )
        assert "predecessor: cafe" in doc


class TestBuiltinPolicies:
    @pytest.mark.parametrize(
        "template",
        [
            OTP_POLICIES.namespace,
            OTP_POLICIES.primary,
            OTP_POLICIES.secondary,
            COSIGN_POLICIES.secondary,
        ],
    )
    def test_full_bindings_leave_no_placeholders(self, renderer, state, template):
        doc = renderer.render(template, build_bindings(state))
        assert "{{" not in doc
        assert "}}" not in doc

    def test_volume_name_follows_version(self, renderer, state):
        rolled = state.model_copy(update={"volume_version": 7})
        doc = renderer.render(OTP_POLICIES.primary, build_bindings(rolled))
        assert "single_run_7" in doc
        assert "single_run_0" not in doc

    def test_primary_carries_secret_and_exports_to_secondary(self, renderer, state):
        doc = renderer.render(OTP_POLICIES.primary, build_bindings(state))
        assert f"value: {state.secret}" in doc
        assert f"- session: {state.session2}" in doc

    def test_secondary_imports_from_primary(self, renderer, state):
        doc = renderer.render(OTP_POLICIES.secondary, build_bindings(state))
        assert f"session: {state.session}" in doc
        assert f"one_time_password_shared_secret: {state.secret}" in doc

    def test_cosign_remote_keeps_scone_placeholders(self, renderer, state):
        doc = renderer.render(COSIGN_POLICIES.secondary, build_bindings(state))
        assert "$$SCONE::cosign_password$$" in doc
        assert "name: generate-key-pair" in doc
