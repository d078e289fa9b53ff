"""
Runtime settings loaded from the environment (and a .env file, if present).
"""

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from leadsync.core.mapping import DEFAULT_MAPPING_PATH
from leadsync.remote.client import DEFAULT_BASE_URL, PodioCredentials


def _env_required(name: str, *fallbacks: str) -> str:
    for candidate in (name, *fallbacks):
        value = os.getenv(candidate)
        if value:
            return value
    raise ValueError(
        f"Missing required setting {name}. "
        f"Set the {name} environment variable or add it to .env."
    )


class SyncSettings(BaseModel):
    """
    Settings for one leadsync run.

    Attributes:
        client_id: Podio API client id
        client_secret: Podio API client secret
        app_id: Podio app the leads are synced into (PODIO_APP_ID, else the
            field mapping's app_id)
        app_token: Podio app token
        base_url: Podio API base URL
        input_dir: Directory scanned for CSV files
        field_mapping: Path to the field mapping YAML
        max_workers: Worker threads per input file
        max_in_flight: Rows dispatched but not finished, per file
        timeout_s: HTTP timeout in seconds
    """

    client_id: str = Field(..., min_length=1)
    client_secret: str = Field(..., min_length=1)
    app_id: int | None = None
    app_token: str = Field(..., min_length=1)
    base_url: str = DEFAULT_BASE_URL
    input_dir: Path = Path("./paste_csv_here")
    field_mapping: Path = DEFAULT_MAPPING_PATH
    max_workers: int = Field(8, ge=1)
    max_in_flight: int = Field(32, ge=1)
    timeout_s: float = Field(30.0, gt=0)

    @classmethod
    def from_env(cls, env_file: str | Path | None = None) -> "SyncSettings":
        """
        Build settings from environment variables.

        Values in the process environment win over the .env file.

        PODIO_APP_ID may be left unset when the field mapping names the app;
        see with_mapping_app_id().

        Raises:
            ValueError: If a required credential is missing
        """
        load_dotenv(env_file, override=False)
        app_id = os.getenv("PODIO_APP_ID")

        return cls(
            client_id=_env_required("PODIO_CLIENT_ID"),
            client_secret=_env_required("PODIO_CLIENT_SECRET"),
            app_id=int(app_id) if app_id else None,
            # PODIO_API_TOKEN is the name older deployments used
            app_token=_env_required("PODIO_APP_TOKEN", "PODIO_API_TOKEN"),
            base_url=os.getenv("PODIO_BASE_URL", DEFAULT_BASE_URL),
            input_dir=Path(os.getenv("LEADSYNC_INPUT_DIR", "./paste_csv_here")),
            field_mapping=Path(os.getenv("LEADSYNC_FIELD_MAPPING", str(DEFAULT_MAPPING_PATH))),
            max_workers=int(os.getenv("LEADSYNC_MAX_WORKERS", "8")),
            max_in_flight=int(os.getenv("LEADSYNC_MAX_IN_FLIGHT", "32")),
            timeout_s=float(os.getenv("LEADSYNC_TIMEOUT_S", "30")),
        )

    def with_mapping_app_id(self, mapping_app_id: int | None) -> "SyncSettings":
        """
        Fill in the app id from the field mapping. PODIO_APP_ID wins when set.

        Raises:
            ValueError: If neither names the app
        """
        if self.app_id is not None:
            return self
        if mapping_app_id is None:
            raise ValueError(
                "Missing required setting PODIO_APP_ID. "
                "Set the PODIO_APP_ID environment variable or app_id in the field mapping."
            )
        return self.model_copy(update={"app_id": mapping_app_id})

    @property
    def credentials(self) -> PodioCredentials:
        if self.app_id is None:
            raise ValueError("Podio app id is not configured")
        return PodioCredentials(
            client_id=self.client_id,
            client_secret=self.client_secret,
            app_id=self.app_id,
            app_token=self.app_token,
        )
