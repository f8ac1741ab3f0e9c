from typing import Optional

from cachetools import cached
from dotenv import find_dotenv, load_dotenv

from openstrand.config.logger import logging_setup
from openstrand.config.settings import apply_env_overrides


@cached(cache={})
def setup():
    """
    One-time setup of environment, settings, and logging. Idempotent.
    """

    env_setup()

    logging_setup()


def env_setup() -> Optional[str]:
    dotenv_path = find_dotenv(usecwd=True)
    if dotenv_path:
        load_dotenv(dotenv_path)
    apply_env_overrides()
    return dotenv_path or None
