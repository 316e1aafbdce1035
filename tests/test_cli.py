"""
Unit tests for the CLI command groups (otp, cosign).
"""

from unittest.mock import patch

import pyotp
import pytest
from typer.testing import CliRunner

from sconepolicy.cli import app
from sconepolicy.policies import COSIGN_VARIANT
from sconepolicy.shell import CommandResult
from sconepolicy.state import PolicyState, StateStore

runner = CliRunner()


def invoke(tmp_path, *args, **kwargs):
    return runner.invoke(app, ["-C", str(tmp_path), *args], **kwargs)


class TestHelp:
    def test_root_help_lists_groups(self):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "otp" in result.output
        assert "cosign" in result.output

    def test_otp_help(self):
        result = runner.invoke(app, ["otp", "--help"])
        assert result.exit_code == 0
        for command in (
            "create",
            "roll-forward",
            "gen-qr-code",
            "test-qr-code",
            "add-authenticator",
            "print-otp",
        ):
            assert command in result.output

    def test_cosign_help(self):
        result = runner.invoke(app, ["cosign", "--help"])
        assert result.exit_code == 0
        for command in (
            "gen-policies",
            "gen-keypair",
            "sign-image",
            "verify-image",
            "create",
            "roll-forward",
            "gen-qr-code",
        ):
            assert command in result.output


class TestCreate:
    def test_create(self, tmp_path, coordinator):
        with patch("sconepolicy.cli._shared.build_coordinator", return_value=coordinator):
            result = invoke(tmp_path, "otp", "create")
        assert result.exit_code == 0, result.output
        assert "up to date" in result.output
        state = StateStore(tmp_path / "state.js").load()
        assert state.namespace in result.output

    def test_create_failure_exits_non_zero(self, tmp_path, coordinator, service):
        service.fail_on.add("check")
        with patch("sconepolicy.cli._shared.build_coordinator", return_value=coordinator):
            result = invoke(tmp_path, "otp", "create")
        assert result.exit_code == 1
        assert "❌" in result.output
        assert "unexpected key" in result.output
        assert not (tmp_path / "state.js").exists()

    def test_cosign_create_requires_policy_files(self, tmp_path):
        result = invoke(tmp_path, "cosign", "create")
        assert result.exit_code == 1
        assert "gen-policies" in result.output


class TestRollForward:
    def test_requires_force(self, tmp_path):
        result = invoke(tmp_path, "otp", "roll-forward")
        assert result.exit_code == 2

    def test_roll_forward(self, tmp_path, coordinator):
        coordinator.create()
        with patch("sconepolicy.cli._shared.build_coordinator", return_value=coordinator):
            result = invoke(tmp_path, "otp", "roll-forward", "--force")
        assert result.exit_code == 0, result.output
        assert "volume version 1" in result.output


class TestGenPolicies:
    def test_writes_files(self, tmp_path):
        result = invoke(tmp_path, "cosign", "gen-policies")
        assert result.exit_code == 0
        for suffix in ("namespace", "admin", "remote"):
            assert (tmp_path / f"policy_{suffix}.yml").exists()

    def test_refuses_to_overwrite(self, tmp_path):
        invoke(tmp_path, "cosign", "gen-policies", "--prefix", "p")
        (tmp_path / "p_admin.yml").write_text("custom")

        result = invoke(tmp_path, "cosign", "gen-policies", "--prefix", "p")

        assert result.exit_code == 1
        assert "--force" in result.output
        assert (tmp_path / "p_admin.yml").read_text() == "custom"

    def test_force_overwrites(self, tmp_path):
        invoke(tmp_path, "cosign", "gen-policies")
        (tmp_path / "policy_admin.yml").write_text("custom")

        result = invoke(tmp_path, "cosign", "gen-policies", "--force")

        assert result.exit_code == 0
        assert (tmp_path / "policy_admin.yml").read_text() != "custom"


class TestWorkloadCommands:
    @pytest.fixture
    def saved_state(self, tmp_path):
        state = PolicyState.initial()
        StateStore(tmp_path / "state.js").save(state)
        return state

    def test_requires_state(self, tmp_path):
        result = invoke(tmp_path, "otp", "gen-qr-code")
        assert result.exit_code == 1
        assert "No state found" in result.output

    @patch("sconepolicy.workloads.run_shell")
    def test_gen_qr_code(self, mock_shell, tmp_path, saved_state):
        mock_shell.return_value = CommandResult(0, "", "")
        result = invoke(tmp_path, "otp", "gen-qr-code")
        assert result.exit_code == 0
        assert "qrcode.svg" in result.output

    @patch("sconepolicy.workloads.run_shell")
    def test_gen_qr_code_failure(self, mock_shell, tmp_path, saved_state):
        mock_shell.return_value = CommandResult(1, "", "OTP_SINGLE_USE already exists!")
        result = invoke(tmp_path, "otp", "gen-qr-code")
        assert result.exit_code == 1
        assert "already exists" in result.output

    @patch("sconepolicy.workloads.run_shell")
    def test_add_authenticator_prompts_for_otp(self, mock_shell, tmp_path, saved_state):
        mock_shell.return_value = CommandResult(0, "", "")
        result = invoke(tmp_path, "otp", "add-authenticator", input="12 34 56\n")
        assert result.exit_code == 0, result.output
        assert f"{saved_state.session2}/otpqr@123456" in mock_shell.call_args[0][0]

    @patch("sconepolicy.workloads.run_shell")
    def test_sign_image(self, mock_shell, tmp_path):
        state = PolicyState.initial(COSIGN_VARIANT)
        StateStore(tmp_path / "state.js", COSIGN_VARIANT).save(state)
        mock_shell.return_value = CommandResult(0, "", "")

        result = invoke(
            tmp_path, "cosign", "sign-image", "--image", "reg/app:1", "--otp", "111111"
        )

        assert result.exit_code == 0, result.output
        assert f"{state.session2}/sign@111111" in mock_shell.call_args[0][0]

    def test_sign_image_requires_image(self, tmp_path, saved_state):
        result = invoke(tmp_path, "cosign", "sign-image", "--otp", "111111")
        assert result.exit_code == 2

    def test_print_otp(self, tmp_path, saved_state):
        with patch("sconepolicy.cli._shared.current_code", return_value="424242") as code:
            result = invoke(tmp_path, "otp", "print-otp")
        assert result.exit_code == 0
        assert "424242" in result.output
        code.assert_called_once_with(saved_state.secret)


class TestCurrentCode:
    def test_matches_totp(self):
        from sconepolicy.otp import current_code
        from sconepolicy.state import new_secret

        secret = new_secret()
        with patch("pyotp.TOTP.now", return_value="000111"):
            assert current_code(secret) == "000111"
        assert pyotp.TOTP(secret).verify(current_code(secret), valid_window=1)
