"""Git Tag Action - Create or update tags through local git or a hosting platform API."""

import asyncio
import logging
import sys

from git_tag_action.log import configure_logging, mask_secret
from git_tag_action.outputs import write_outputs
from git_tag_action.runner import run_action
from git_tag_action.settings import ConfigurationError, load_settings

__version__ = "1.0.0"

logger = logging.getLogger(__name__)


def main() -> None:
    """Console entry point; exits with status 1 on any failure."""
    try:
        settings = load_settings()
    except ConfigurationError as e:
        configure_logging()
        logger.error(str(e))
        sys.exit(1)

    configure_logging(settings.verbose)
    mask_secret(settings.token)

    try:
        outputs = asyncio.run(run_action(settings))
    except Exception as e:
        logger.error(str(e) or e.__class__.__name__)
        if settings.verbose:
            logger.debug("Traceback:", exc_info=True)
        sys.exit(1)

    write_outputs(outputs)
