"""
In-page instrumentation script.

The script itself is built elsewhere; the crawler only loads the template
and fills in its two placeholders before injecting it into every page.
"""

import os
from pathlib import Path
from typing import Optional, Union

from runner.config import ConfigurationError
from runner.logging_setup import get_logger

logger = get_logger("instrumentation")

ENDPOINT_PLACEHOLDER = "%API_ENDPOINT%"
WEBSITE_PLACEHOLDER = "%WEBSITE%"
CLIENT_CODE_ENV = "TRACKX_CODE"


def load_client_script(path: Optional[Union[str, Path]] = None) -> str:
    """
    Load the instrumentation script template.

    Args:
        path: Script file (CLIENT_SCRIPT_PATH); falls back to the
            TRACKX_CODE environment variable when not set

    Returns:
        Script source with placeholders intact

    Raises:
        ConfigurationError: If neither source provides a script
    """
    if path is not None:
        script_path = Path(path)
        if not script_path.is_file():
            raise ConfigurationError(f"Client script not found: {script_path}")
        logger.debug(f"Loaded client script from {script_path}")
        return script_path.read_text(encoding="utf-8")

    code = os.getenv(CLIENT_CODE_ENV)
    if not code:
        raise ConfigurationError(
            f"No client script: set CLIENT_SCRIPT_PATH in the config or {CLIENT_CODE_ENV} in the environment"
        )
    return code


def render_client_script(template: str, endpoint: str, website: str) -> str:
    """Substitute the endpoint and the site as imported into the template."""
    return template.replace(ENDPOINT_PLACEHOLDER, endpoint).replace(WEBSITE_PLACEHOLDER, website)
