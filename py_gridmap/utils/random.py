"""
Random number generation utilities.

All randomness in the engine flows from an AleaPRNG seeded from the map
seed. Python's random and NumPy's random are not used, so every generator
mode can be reproduced exactly from its seed.
"""

from typing import Union

from ..core.alea_prng import AleaPRNG

Seed = Union[int, str]

# Noise seeds are kept small so the trig hash stays well conditioned.
NOISE_SEED_RANGE = 10_000


def make_prng(seed: Seed, stream: str = "") -> AleaPRNG:
    """
    Create an independent PRNG for one stage of the pipeline.

    Args:
        seed: Map seed (string or integer)
        stream: Stage label, so stages draw from separate sequences

    Returns:
        AleaPRNG instance
    """
    if stream:
        return AleaPRNG([seed, stream])
    return AleaPRNG(seed)


def noise_seed(seed: Seed) -> int:
    """
    Map a user seed onto the integer seed consumed by the noise hash.

    Integer seeds are used as-is; strings are hashed through Alea so that
    ``"x"`` always maps to the same field.
    """
    if isinstance(seed, bool):
        return int(seed)
    if isinstance(seed, int):
        return seed
    text = str(seed)
    if text.lstrip("-").isdigit():
        return int(text)
    return int(AleaPRNG(text).random() * NOISE_SEED_RANGE)
