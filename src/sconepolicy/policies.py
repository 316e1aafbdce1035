"""
Policy variants and their session templates.

Two variants share the same session lifecycle:

- otp:    a primary session holding the OTP secret and a QR code service,
          and a secondary session that lets an existing authenticator
          enroll a new one.
- cosign: the same OTP sessions, with the secondary session additionally
          exposing cosign key generation, signing and verification.
          Its templates live in editable policy files (see ``write_policies``).

Every template chains to its predecessor through the
``{{predecessor_key}}: {{predecessor}}`` line and names its volume
``single_run_{{volume_version}}`` so that a roll-forward creates a new volume.
"""

from dataclasses import dataclass, field
from pathlib import Path

from sconepolicy.errors import PolicyFileExists, PolicyFileMissing
from sconepolicy.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class PolicySet:
    """The three templates reconciled by one ``create``."""

    namespace: str
    primary: str
    secondary: str


@dataclass(frozen=True)
class PolicyVariant:
    """Defaults that differ between the otp and cosign tools."""

    name: str
    primary_suffix: str
    secondary_suffix: str
    account: str
    volume_dirs: tuple = field(default=("single_run",))
    uses_policy_files: bool = False


NAMESPACE_TEMPLATE = """#
# Simple Namespace Template
# - Only creator has access to this namespace
#
name: {{namespace}}
version: "0.3"
{{predecessor_key}}: {{predecessor}}

access_policy:
  read:
    - CREATOR
  update:
    - CREATOR
  create_sessions:
    - CREATOR
"""

OTP_PRIMARY_TEMPLATE = """
name: {{session}}
version: "0.3"
{{predecessor_key}}: {{predecessor}}

access_policy:
  read:
    - CREATOR
  update:
    - CREATOR
  create_sessions:
    - CREATOR

services:
  - name: otpqr
    image_name: otpqr_image
## enable for release mode:
#   attestation:
#     - mrenclave:
#       - {{mrenclave}}
    environment:
      OTP_SINGLE_USE: "/root/single_run/once"
      OTP_ACCOUNT_NAME: "{{scone_account}}"
      OTP_ACCOUNT_LOGIN: "{{scone_user}}"
      OTP_SECRET: $$SCONE::otp_secret$$
      OTP_OUTPUT_FILE: "/root/qrcode.svg"
    pwd: "/root"
  - name: test
    image_name: otpqr_image
    environment:
      OTP_SINGLE_USE: "/root/single_run/test"
      OTP_ACCOUNT_NAME: "otp_test_account"
      OTP_ACCOUNT_LOGIN: "otp_test_user"
      OTP_SECRET: test
      OTP_OUTPUT_FILE: "/root/test.svg"
    pwd: "/root"

security:
  attestation:
    mode: none
    # mode: hardware
    # tolerate: [debug-mode, hyperthreading, outdated-tcb]

volumes:
  - name: single_run_{{volume_version}}
    export:
      - session: {{session2}}

images:
  - name: otpqr_image
    volumes:
      - name: single_run_{{volume_version}}
        path: /root/single_run

secrets:
  - name: otp_secret
    kind: ascii
    value: {{secret}}
    export:
      - session: {{session2}}
"""

OTP_SECONDARY_TEMPLATE = """
name: {{session2}}
version: "0.3"
{{predecessor_key}}: {{predecessor}}

access_policy:
  read:
    - CREATOR
  update:
    - CREATOR
  create_sessions:
    - CREATOR

services:
  - name: otpqr
    image_name: otpqr_image
    command: {{otp_binary}}
    environment:
      OTP_SINGLE_USE: "/root/single_run/once"
      OTP_ACCOUNT_NAME: "{{scone_account}}"
      OTP_ACCOUNT_LOGIN: "{{scone_user}}"
      OTP_SECRET: $$SCONE::otp_secret$$
      OTP_OUTPUT_FILE: "/root/qrcode.svg"
      OTP_RESET: "TRUE"
    pwd: "/root"

security:
  attestation:
    one_time_password_shared_secret: {{secret}}
    mode: none
    # tolerate: [debug-mode, hyperthreading, outdated-tcb]

volumes:
  - name: single_run_{{volume_version}}
    import:
      session: {{session}}
      volume: single_run_{{volume_version}}

images:
  - name: otpqr_image
    volumes:
      - name: single_run_{{volume_version}}
        path: /root/single_run

secrets:
  - name: otp_secret
    import:
      session: {{session}}
      secret: otp_secret
"""

_COSIGN_ENVIRONMENT = """      environment:
        COSIGN_PASSWORD: $$SCONE::cosign_password$$
        COSIGN_DOCKER_MEDIA_TYPES: 1
        GOFLAGS: "-buildmode=pie"
        SCONE_ALLOW_DLOPEN: 0
        SCONE_HEAP: 1G
        SCONE_SYSLIBS: 1
        HOME: /root
        PWD: /root
        PATH: /go/bin:/usr/local/go/bin:/usr/local/sbin:/usr/local/bin:/usr/sbin:/usr/bin:/sbin:/bin
        GOPATH: /go
"""

COSIGN_REMOTE_TEMPLATE = (
    """
name: {{session2}}
version: "0.3"
{{predecessor_key}}: {{predecessor}}

access_policy:
  read:
    - CREATOR
  update:
    - CREATOR
  create_sessions:
    - CREATOR

services:
    - name: generate-key-pair
      command: cosign generate-key-pair
      image_name: cosign_image
      environment:
        COSIGN_PASSWORD: $$SCONE::cosign_password$$
      pwd: "/root/cosign_keys"
    - name: sign
      command: cosign sign --key /root/cosign_keys/cosign.key @@1
      image_name: cosign_image
"""
    + _COSIGN_ENVIRONMENT
    + """      pwd: "/root"
    - name: verify
      command: cosign verify --key /root/cosign_keys/cosign.pub @@1
      image_name: cosign_image
"""
    + _COSIGN_ENVIRONMENT
    + """      pwd: "/root"
    - name: otpqr
      image_name: otpqr_image
      command: {{otp_binary}}
      environment:
        OTP_SINGLE_USE: "/root/single_run/once"
        OTP_ACCOUNT_NAME: "{{scone_account}}"
        OTP_ACCOUNT_LOGIN: "{{scone_user}}"
        OTP_SECRET: $$SCONE::otp_secret$$
        OTP_OUTPUT_FILE: "/root/qrcode.svg"
        OTP_RESET: "TRUE"
      pwd: "/root"

security:
  attestation:
    one_time_password_shared_secret: {{secret}}
    mode: none
    # tolerate: [debug-mode, hyperthreading, outdated-tcb]

volumes:
  - name: cosign_volume
  - name: single_run_{{volume_version}}
    import:
      session: {{session}}
      volume: single_run_{{volume_version}}

images:
  - name: cosign_image
    volumes:
      - name: cosign_volume
        path: /root/cosign_keys
  - name: otpqr_image
    volumes:
      - name: single_run_{{volume_version}}
        path: /root/single_run

secrets:
  - name: otp_secret
    import:
      session: {{session}}
      secret: otp_secret
  - name: cosign_password
    kind: ascii
    size: 32
"""
)

OTP_VARIANT = PolicyVariant(
    name="otp",
    primary_suffix="otpqr-x",
    secondary_suffix="otpqr-reset",
    account="SCONE OTP",
)

COSIGN_VARIANT = PolicyVariant(
    name="cosign",
    primary_suffix="cosign",
    secondary_suffix="cosign-reset",
    account="SCONE cosign",
    volume_dirs=("single_run", "cosign_keys"),
    uses_policy_files=True,
)

OTP_POLICIES = PolicySet(
    namespace=NAMESPACE_TEMPLATE,
    primary=OTP_PRIMARY_TEMPLATE,
    secondary=OTP_SECONDARY_TEMPLATE,
)

COSIGN_POLICIES = PolicySet(
    namespace=NAMESPACE_TEMPLATE,
    primary=OTP_PRIMARY_TEMPLATE,
    secondary=COSIGN_REMOTE_TEMPLATE,
)

# Suffixes of the editable policy files, in PolicySet field order.
POLICY_FILE_SUFFIXES = ("namespace", "admin", "remote")


def policy_paths(prefix: str, directory: Path) -> list[Path]:
    """Return the namespace, admin and remote policy file paths."""
    return [Path(directory) / f"{prefix}_{suffix}.yml" for suffix in POLICY_FILE_SUFFIXES]


def write_policies(
    prefix: str,
    force: bool,
    directory: Path,
    policies: PolicySet = COSIGN_POLICIES,
) -> list[Path]:
    """
    Write the default cosign policies so they can be customized.

    Existing files are only overwritten with ``force``. The check is done
    for all three files before any is written.

    Returns:
        The written paths.

    Raises:
        PolicyFileExists: If a file exists and ``force`` is not set.
    """
    paths = policy_paths(prefix, directory)
    if not force:
        existing = [str(p) for p in paths if p.exists()]
        if existing:
            raise PolicyFileExists(
                f"Policy file(s) already exist: {', '.join(existing)}. "
                "Use --force to overwrite."
            )

    contents = (policies.namespace, policies.primary, policies.secondary)
    for path, content in zip(paths, contents):
        path.write_text(content, encoding="utf-8")
        logger.info(f"Written policy to file {path}")
    return paths


def read_policies(prefix: str, directory: Path) -> PolicySet:
    """
    Load the namespace, admin and remote templates written by ``write_policies``.

    Raises:
        PolicyFileMissing: If one of the files does not exist.
    """
    templates = []
    for path in policy_paths(prefix, directory):
        if not path.exists():
            raise PolicyFileMissing(
                f"Policy file {path} not found. Run 'gen-policies' first."
            )
        templates.append(path.read_text(encoding="utf-8"))
    return PolicySet(*templates)


def load_policies(variant: PolicyVariant, prefix: str, directory: Path) -> PolicySet:
    """Return the templates used by ``variant``."""
    if variant.uses_policy_files:
        return read_policies(prefix, directory)
    return OTP_POLICIES
