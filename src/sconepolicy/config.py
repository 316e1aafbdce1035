"""
Runtime configuration.

Values come from environment variables (optionally loaded from a ``.env``
file in the working directory). Everything has a default so a bare
``sconepolicy otp create`` works out of the box.
"""

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

ENV_PREFIX = "SCONEPOLICY_"

DEFAULT_CLI_IMAGE = "registry.scontain.com:5050/sconecuratedimages/sconecli"


class Settings(BaseModel):
    """Paths, images and addresses used when talking to CAS and docker."""

    workdir: Path = Field(default_factory=Path.cwd)
    state_file: str = "state.js"
    cas_addr: str = "scone-cas.cf"
    cli_image: str = DEFAULT_CLI_IMAGE
    cosign_image: str = "cosign:scone"
    cosign_binary: str = "/go/bin/cosign"
    shell: str = "sh"
    docker_config: Path = Field(default_factory=lambda: Path.home() / ".docker")
    cas_config: Path = Field(default_factory=lambda: Path.home() / ".cas")
    scone_config: Path = Field(default_factory=lambda: Path.home() / ".scone")

    @property
    def state_path(self) -> Path:
        return self.workdir / self.state_file

    @classmethod
    def from_env(cls, workdir: Optional[Path] = None) -> "Settings":
        """
        Build settings from the environment.

        A ``.env`` file in ``workdir`` is loaded first; variables already set
        in the process environment take precedence over it.
        """
        workdir = Path(workdir) if workdir else Path.cwd()
        load_dotenv(workdir / ".env")

        values = {"workdir": workdir}
        for field_name in (
            "state_file",
            "cas_addr",
            "cli_image",
            "cosign_image",
            "cosign_binary",
            "shell",
            "docker_config",
            "cas_config",
            "scone_config",
        ):
            env_value = os.getenv(f"{ENV_PREFIX}{field_name.upper()}")
            if env_value:
                values[field_name] = env_value
        return cls(**values)
