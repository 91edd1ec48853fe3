"""Gallery of ready-made models."""

from __future__ import annotations

from .btf2003 import btf2003, btf2003_dde, btf2003_sde
from .delay import neural_net_dde, wille_baker_dde
from .neural import boldhrf, eie0d, wilson_cowan_net
from .oscillators import kuramoto, kuramoto_net
from .pde import (
    fisher_kolmogorov_1d,
    reaction_diffusion_1d,
    wave_equation_1d,
    wave_equation_2d,
)
from .stochastic import kloeden_platen_446, ornstein_uhlenbeck

__all__ = [
    "boldhrf",
    "btf2003",
    "btf2003_dde",
    "btf2003_sde",
    "eie0d",
    "fisher_kolmogorov_1d",
    "kloeden_platen_446",
    "kuramoto",
    "kuramoto_net",
    "neural_net_dde",
    "ornstein_uhlenbeck",
    "reaction_diffusion_1d",
    "wave_equation_1d",
    "wave_equation_2d",
    "wille_baker_dde",
    "wilson_cowan_net",
]
