"""Stabilization parameter for residual-based advection-diffusion stabilization."""

import numpy as np


def compute_tau(kappa: float, Cinv: float, p: int, hk: float, vel: float) -> float:
    r"""
    Return the element stabilization parameter.

    Parameters
    ----------
    kappa : float
        Diffusivity
    Cinv : float
        Inverse-estimate constant
    p : int
        Polynomial order of the basis
    hk : float
        Characteristic element size. A zero size is not rejected and
        yields a non-finite or zero tau.
    vel : float
        Magnitude of the element advection velocity

    Returns
    -------
    float
        Stabilization parameter :math:`\tau \geq 0`

    Notes
    -----
    The advective and diffusive inverse time scales are blended as

    .. math::

        \tau = \left( \left(\frac{2|U|}{h_k}\right)^2
               + \left(\frac{C_{inv} \kappa p^2}{h_k^2}\right)^2 \right)^{-1/2}

    which tends to :math:`h_k^2 / (C_{inv} \kappa p^2)` for vanishing
    advection and to :math:`h_k / (2|U|)` in the advection-dominated limit.
    With neither advection nor diffusion there is nothing to stabilize and
    zero is returned.

    References
    ----------
    Shakib, Hughes & Johan (1991), CMAME 89, "A new finite element
    formulation for computational fluid dynamics: X."
    """
    hk = np.float64(hk)
    with np.errstate(divide="ignore", invalid="ignore"):
        advective = 2.0 * abs(vel) / hk
        diffusive = Cinv * abs(kappa) * p * p / (hk * hk)
        denominator = np.hypot(advective, diffusive)
    if denominator == 0.0:
        return 0.0
    return float(1.0 / denominator)
