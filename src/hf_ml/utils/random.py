"""
Global RNG seeding for debugging runs.

Search sampling, CV folds, bootstrap draws and model fits all take explicit
seeds from the configuration and never touch the global RNGs. SEED_GLOBAL
exists only to pin down stray global-RNG use while debugging a
single-threaded run.
"""

import logging
import os
import random
from collections.abc import Mapping

import numpy as np

logger = logging.getLogger(__name__)

SEED_ENV_VAR = "SEED_GLOBAL"
MAX_SEED = 2**32 - 1


def set_random_seed(seed: int):
    """Seed Python's ``random`` module and NumPy's legacy global RNG."""
    random.seed(seed)
    np.random.seed(seed)


def parse_seed(raw: str | None) -> int | None:
    """
    Parse a seed string; blank, non-integer or out-of-range values give None.

    Examples:
        >>> parse_seed(" 7 ")
        7
        >>> parse_seed("-1") is None
        True
    """
    if raw is None or not raw.strip():
        return None
    try:
        seed = int(raw.strip())
    except ValueError:
        logger.warning(f"{SEED_ENV_VAR}='{raw}' is not an integer; ignoring")
        return None
    if not 0 <= seed <= MAX_SEED:
        logger.warning(f"{SEED_ENV_VAR}={seed} is outside [0, {MAX_SEED}]; ignoring")
        return None
    return seed


def apply_seed_global(environ: Mapping[str, str] | None = None) -> int | None:
    """
    Seed the global RNGs from SEED_GLOBAL when it holds a valid seed.

    Args:
        environ: Environment mapping (default ``os.environ``)

    Returns:
        The applied seed, or None when unset or invalid
    """
    env = os.environ if environ is None else environ
    seed = parse_seed(env.get(SEED_ENV_VAR))
    if seed is None:
        return None
    set_random_seed(seed)
    logger.info(f"{SEED_ENV_VAR}={seed}: global RNGs seeded")
    return seed
