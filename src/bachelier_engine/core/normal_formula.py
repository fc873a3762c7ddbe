"""Bachelier (normal) model pricing and implied volatility.

The implied volatility inversion follows the LFK-4 representation with four
rational functions from F. Le Floc'h, "Fast and Accurate Analytic Basis Point
Volatility" (2016, section 4.2.2). Close to the money the rational functions
are replaced by the algebraic inversion of the small-moneyness expansion of the
price, which does not lose precision when strike and forward coincide.
"""

from __future__ import annotations

import math
import sys
from dataclasses import dataclass
from typing import Final, Sequence, Tuple, Union

import numpy as np
from scipy.optimize import brentq
from scipy.special import erfcx, ndtr

from .errors import ArbitrageViolationError, InvalidInputError
from .models import OptionType
from ..utils.validation import (
    validate_implied_volatility_parameters,
    validate_pricing_parameters,
)

SQRT_TWO = math.sqrt(2.0)
SQRT_TWO_PI = math.sqrt(2.0 * math.pi)
INV_SQRT_TWO_PI = 1.0 / SQRT_TWO_PI

DEFAULT_ATM_THRESHOLD: Final[float] = 1e-3
# Truncation error of the expansion scales as (threshold^2 / 2 pi)^3.
MAX_ATM_THRESHOLD: Final[float] = 0.1
DEFAULT_INTRINSIC_TOLERANCE: Final[float] = 1e-12
VERY_SMALL_VOL: Final[float] = 1e-16

BRANCH_INTRINSIC: Final[str] = "intrinsic"
BRANCH_NEAR_ATM: Final[str] = "near_atm"
BRANCH_LFK4: Final[str] = "lfk4"

# Cutoff on the ratio of time value to moneyness below which the option is deep
# out of the money and the rational functions in ``u`` apply.
_DEEP_OTM_CUTOFF: Final[float] = 0.15
_U_CUTOFF_LOW: Final[float] = 0.0091
_U_CUTOFF_HIGH: Final[float] = 0.088
_BETA_START: Final[float] = -math.log(_DEEP_OTM_CUTOFF)
_BETA_END: Final[float] = -math.log(sys.float_info.min)

# Rational function coefficients, ascending powers. Denominators carry the
# leading unit coefficient explicitly.
_A_NUMERATOR: Final[Tuple[float, ...]] = (
    0.06155371425063157,
    2.723711658728403,
    10.83806891491789,
    301.0827907126612,
    1082.864564205999,
    790.7079667603721,
    109.330638190985,
    0.1515726686825187,
)
_A_DENOMINATOR: Final[Tuple[float, ...]] = (
    1.0,
    1.436062756519326,
    118.6674859663193,
    441.1914221318738,
    313.4771127147156,
    40.90187645954703,
)
_B_NUMERATOR: Final[Tuple[float, ...]] = (
    0.6409168551974357,
    788.5769356915809,
    445231.8217873989,
    149904950.4316367,
    32696572166.83277,
    4679633190389.852,
    420159669603232.9,
    2.053009222143781e16,
    3.434507977627372e17,
    2.012931197707014e16,
)
_B_DENOMINATOR: Final[Tuple[float, ...]] = (
    1.0,
    644.3895239520736,
    211503.4461395385,
    42017301.42101825,
    5311468782.258145,
    411727826816.0715,
    17013504968737.03,
    247411313213747.3,
)
_C_NUMERATOR: Final[Tuple[float, ...]] = (
    0.6421106629595358,
    654.5620600001645,
    291531.4455893533,
    69009535.38571493,
    9248876215.120627,
    479057753706.175,
    9209341680288.471,
    61502442378981.76,
    107544991866857.5,
    63146430757.94501,
)
_C_DENOMINATOR: Final[Tuple[float, ...]] = (
    1.0,
    437.9924136164148,
    90735.89146171122,
    9217405.224889684,
    400973228.1961834,
    7020390994.356452,
    44654661587.93606,
    76248508709.85633,
)
_D_NUMERATOR: Final[Tuple[float, ...]] = (
    0.936024443848096,
    328.5399326371301,
    177612.3643595535,
    8192571.038267588,
    110475347.0617102,
    545792367.0681282,
    1033254933.287134,
    695066365.5403566,
    123629089.1036043,
    756.3653755877336,
)
_D_DENOMINATOR: Final[Tuple[float, ...]] = (
    1.0,
    173.9755977685531,
    6591.71234898389,
    82796.56941455391,
    396398.9698566103,
    739196.7396982114,
    493626.035952601,
    87510.31231623856,
)

OptionTypeLike = Union[OptionType, str]
ArrayLike = Union[float, Sequence[float], np.ndarray]


@dataclass(frozen=True, slots=True)
class NormalGreeks:
    """Discounted normal model price together with its first order greeks."""

    price: float
    delta: float
    gamma: float
    vega: float
    theta: float


def _norm_pdf(value: float) -> float:
    return INV_SQRT_TWO_PI * math.exp(-0.5 * value * value)


def _norm_cdf(value: float) -> float:
    return 0.5 * math.erfc(-value / SQRT_TWO)


def _kernel(d: float) -> float:
    """Return ``d Phi(d) + phi(d)``; negative ``d`` goes through erfcx to avoid cancellation."""

    if d >= 0.0:
        return d * _norm_cdf(d) + _norm_pdf(d)
    return math.exp(-0.5 * d * d) * (0.5 * d * float(erfcx(-d / SQRT_TWO)) + INV_SQRT_TWO_PI)


def _horner(coefficients: Sequence[float], value: float) -> float:
    result = 0.0
    for coefficient in reversed(coefficients):
        result = result * value + coefficient
    return result


def _rational(
    numerator: Sequence[float], denominator: Sequence[float], value: float
) -> float:
    return _horner(numerator, value) / _horner(denominator, value)


def _eta(z: float) -> float:
    """Return ``-z / log(1 - z)``, expanded to seventh order near zero."""

    if z < 1e-2:
        return 1.0 - z * (
            0.5
            + z
            * (
                1.0 / 12.0
                + z
                * (
                    1.0 / 24.0
                    + z
                    * (
                        19.0 / 720.0
                        + z * (3.0 / 160.0 + z * (863.0 / 60_480.0 + z * (275.0 / 24_192.0)))
                    )
                )
            )
        )
    return -z / math.log1p(-z)


def is_near_atm(time_value: float, distance: float, atm_threshold: float) -> bool:
    """Return whether the near-the-money expansion applies."""

    return distance == 0.0 or distance < atm_threshold * (time_value + 0.5 * distance)


def _near_atm_deviation(time_value: float, distance: float) -> float:
    """Invert ``tv + m/2 = phi(0) (s + m^2 / 2s - m^4 / 24s^3)`` for ``s``."""

    base = (time_value + 0.5 * distance) * SQRT_TWO_PI
    ratio = (distance / base) ** 2
    return base * (1.0 - ratio * (0.5 + ratio * (5.0 / 24.0)))


def _lfk4_deviation(time_value: float, distance: float) -> float:
    """Total standard deviation from the LFK-4 rational functions."""

    z = time_value / distance
    if z < _DEEP_OTM_CUTOFF:
        u = -(math.log(z) + _BETA_START) / (_BETA_END - _BETA_START)
        if u < _U_CUTOFF_LOW:
            h = _rational(_B_NUMERATOR, _B_DENOMINATOR, u)
        elif u < _U_CUTOFF_HIGH:
            h = _rational(_C_NUMERATOR, _C_DENOMINATOR, u)
        else:
            h = _rational(_D_NUMERATOR, _D_DENOMINATOR, u)
        return distance / math.sqrt(h)

    # In-the-money counterpart of the option, obtained through parity.
    itm_price = time_value + distance
    eta = _eta(distance / itm_price)
    return itm_price * _rational(_A_NUMERATOR, _A_DENOMINATOR, eta)


def _time_value(
    option_price: float,
    forward: float,
    strike: float,
    discount_factor: float,
    omega: float,
    intrinsic_tolerance: float,
) -> Tuple[float, float]:
    """Return the undiscounted time value and the absolute moneyness."""

    undiscounted = option_price / discount_factor
    moneyness = omega * (forward - strike)
    intrinsic = max(moneyness, 0.0)
    time_value = undiscounted - intrinsic
    tolerance = intrinsic_tolerance * max(1.0, abs(forward), abs(strike))
    if time_value < -tolerance:
        raise ArbitrageViolationError(undiscounted, intrinsic)
    return time_value, abs(moneyness)


def intrinsic_value(
    forward: float, strike: float, option_type: OptionTypeLike = OptionType.CALL
) -> float:
    """Return ``max(w (F - K), 0)``."""

    omega = OptionType.parse(option_type).sign
    return max(omega * (forward - strike), 0.0)


def price(
    forward: float,
    strike: float,
    time_to_expiry: float,
    volatility: float,
    option_type: OptionTypeLike = OptionType.CALL,
    *,
    discount_factor: float = 1.0,
) -> float:
    """Return the normal model price of a European option.

    With the default ``discount_factor`` the price is undiscounted. A zero total
    standard deviation returns the intrinsic value.
    """

    validate_pricing_parameters(forward, strike, time_to_expiry, volatility, discount_factor)
    omega = OptionType.parse(option_type).sign
    moneyness = omega * (forward - strike)
    deviation = volatility * math.sqrt(time_to_expiry)
    if deviation == 0.0:
        return discount_factor * max(moneyness, 0.0)

    d = moneyness / deviation
    if not math.isfinite(d):
        return discount_factor * max(moneyness, 0.0)
    return discount_factor * deviation * _kernel(d)


def price_greeks(
    forward: float,
    strike: float,
    time_to_expiry: float,
    volatility: float,
    option_type: OptionTypeLike = OptionType.CALL,
    *,
    discount_factor: float = 1.0,
) -> NormalGreeks:
    """Return the discounted price, forward delta, gamma, vega and theta."""

    validate_pricing_parameters(forward, strike, time_to_expiry, volatility, discount_factor)
    omega = OptionType.parse(option_type).sign
    moneyness = omega * (forward - strike)
    sqrt_t = math.sqrt(time_to_expiry)
    deviation = volatility * sqrt_t
    d = moneyness / deviation if deviation > 0.0 else math.nan

    if not math.isfinite(d):
        if moneyness > 0.0:
            exercise = 1.0
        elif moneyness == 0.0:
            exercise = 0.5
        else:
            exercise = 0.0
        return NormalGreeks(
            price=discount_factor * max(moneyness, 0.0),
            delta=discount_factor * omega * exercise,
            gamma=0.0,
            vega=0.0,
            theta=0.0,
        )

    pdf = _norm_pdf(d)
    cdf = _norm_cdf(d)
    return NormalGreeks(
        price=discount_factor * deviation * _kernel(d),
        delta=discount_factor * omega * cdf,
        gamma=discount_factor * pdf / deviation,
        vega=discount_factor * sqrt_t * pdf,
        theta=-discount_factor * volatility * pdf / (2.0 * sqrt_t),
    )


def _option_signs(option_type: Union[OptionTypeLike, Sequence[OptionTypeLike]]) -> np.ndarray:
    if isinstance(option_type, str):
        return np.asarray(OptionType.parse(option_type).sign, dtype=float)
    types = np.asarray(option_type, dtype=object)
    signs = [OptionType.parse(item).sign for item in types.ravel()]
    return np.asarray(signs, dtype=float).reshape(types.shape)


def price_array(
    forward: ArrayLike,
    strike: ArrayLike,
    time_to_expiry: ArrayLike,
    volatility: ArrayLike,
    option_type: Union[OptionTypeLike, Sequence[OptionTypeLike]] = OptionType.CALL,
    *,
    discount_factor: ArrayLike = 1.0,
) -> np.ndarray:
    """Vectorised :func:`price` over broadcastable inputs."""

    arrays = np.broadcast_arrays(
        np.asarray(forward, dtype=float),
        np.asarray(strike, dtype=float),
        np.asarray(time_to_expiry, dtype=float),
        np.asarray(volatility, dtype=float),
        np.asarray(discount_factor, dtype=float),
        _option_signs(option_type),
    )
    forwards, strikes, taus, vols, discounts, omegas = arrays

    for name, values in (
        ("forward", forwards),
        ("strike", strikes),
        ("time_to_expiry", taus),
        ("volatility", vols),
        ("discount_factor", discounts),
    ):
        if not np.all(np.isfinite(values)):
            raise InvalidInputError(f"{name} must be finite")
    if np.any(taus <= 0.0):
        raise InvalidInputError("time_to_expiry must be strictly positive")
    if np.any(vols < 0.0):
        raise InvalidInputError("volatility must be non-negative")
    if np.any(discounts <= 0.0):
        raise InvalidInputError("discount_factor must be strictly positive")

    moneyness = omegas * (forwards - strikes)
    deviation = vols * np.sqrt(taus)
    intrinsic = np.maximum(moneyness, 0.0)
    with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
        d = moneyness / deviation
        gaussian = np.exp(-0.5 * d * d)
        kernel = np.where(
            d >= 0.0,
            d * ndtr(d) + INV_SQRT_TWO_PI * gaussian,
            gaussian * (0.5 * d * erfcx(-d / SQRT_TWO) + INV_SQRT_TWO_PI),
        )
        values = deviation * kernel
    usable = (deviation > 0.0) & np.isfinite(d)
    return discounts * np.where(usable, values, intrinsic)


def check_atm_threshold(atm_threshold: float) -> float:
    """Return ``atm_threshold`` if the near-the-money expansion stays accurate.

    Above :data:`MAX_ATM_THRESHOLD` the truncated expansion would be used at
    moneyness where its error exceeds the round-trip tolerance of 1e-7.
    """

    if not math.isfinite(atm_threshold) or not 0.0 <= atm_threshold <= MAX_ATM_THRESHOLD:
        raise InvalidInputError(
            f"atm_threshold must lie in [0, {MAX_ATM_THRESHOLD}], got {atm_threshold!r}"
        )
    return atm_threshold


def _solve_implied_volatility(
    option_price: float,
    forward: float,
    strike: float,
    time_to_expiry: float,
    discount_factor: float,
    option_type: OptionTypeLike,
    atm_threshold: float,
    intrinsic_tolerance: float,
) -> Tuple[float, str]:
    """Return the implied volatility and the name of the branch that produced it."""

    validate_implied_volatility_parameters(
        option_price, forward, strike, time_to_expiry, discount_factor
    )
    check_atm_threshold(atm_threshold)

    omega = OptionType.parse(option_type).sign
    time_value, distance = _time_value(
        option_price, forward, strike, discount_factor, omega, intrinsic_tolerance
    )
    sqrt_t = math.sqrt(time_to_expiry)
    if time_value <= sqrt_t * VERY_SMALL_VOL:
        # Price equals intrinsic value up to rounding.
        return 0.0, BRANCH_INTRINSIC

    if is_near_atm(time_value, distance, atm_threshold):
        return _near_atm_deviation(time_value, distance) / sqrt_t, BRANCH_NEAR_ATM
    return _lfk4_deviation(time_value, distance) / sqrt_t, BRANCH_LFK4


def implied_volatility(
    option_price: float,
    forward: float,
    strike: float,
    time_to_expiry: float,
    discount_factor: float = 1.0,
    option_type: OptionTypeLike = OptionType.CALL,
    *,
    atm_threshold: float = DEFAULT_ATM_THRESHOLD,
    intrinsic_tolerance: float = DEFAULT_INTRINSIC_TOLERANCE,
) -> float:
    """Return the normal volatility reproducing a discounted option price.

    The inversion is closed form. Options whose moneyness is small relative to
    their time value use the near-the-money expansion; all others use the LFK-4
    rational functions.

    Raises
    ------
    InvalidInputError
        When an input is outside the model domain, including an
        ``atm_threshold`` outside ``[0, MAX_ATM_THRESHOLD]``.
    ArbitrageViolationError
        When the undiscounted price is below intrinsic value by more than
        ``intrinsic_tolerance`` (scaled by the size of forward and strike).
    """

    volatility, _ = _solve_implied_volatility(
        option_price,
        forward,
        strike,
        time_to_expiry,
        discount_factor,
        option_type,
        atm_threshold,
        intrinsic_tolerance,
    )
    return volatility


def implied_volatility_root(
    option_price: float,
    forward: float,
    strike: float,
    time_to_expiry: float,
    discount_factor: float = 1.0,
    option_type: OptionTypeLike = OptionType.CALL,
    *,
    intrinsic_tolerance: float = DEFAULT_INTRINSIC_TOLERANCE,
    xtol: float = 1e-14,
    max_iterations: int = 200,
) -> float:
    """Reference inversion by bracketed root search on :func:`price`."""

    validate_implied_volatility_parameters(
        option_price, forward, strike, time_to_expiry, discount_factor
    )
    option_type = OptionType.parse(option_type)
    time_value, distance = _time_value(
        option_price,
        forward,
        strike,
        discount_factor,
        option_type.sign,
        intrinsic_tolerance,
    )
    sqrt_t = math.sqrt(time_to_expiry)
    if time_value <= sqrt_t * VERY_SMALL_VOL:
        return 0.0

    target = option_price / discount_factor

    def _objective(volatility: float) -> float:
        return price(forward, strike, time_to_expiry, volatility, option_type) - target

    # tv + m/2 >= phi(0) s bounds the root from above.
    upper = 1.01 * (time_value + 0.5 * distance) * SQRT_TWO_PI / sqrt_t
    while _objective(upper) <= 0.0:
        upper *= 2.0
    return float(brentq(_objective, 0.0, upper, xtol=xtol, maxiter=max_iterations))


__all__ = [
    "DEFAULT_ATM_THRESHOLD",
    "DEFAULT_INTRINSIC_TOLERANCE",
    "MAX_ATM_THRESHOLD",
    "NormalGreeks",
    "check_atm_threshold",
    "implied_volatility",
    "implied_volatility_root",
    "intrinsic_value",
    "is_near_atm",
    "price",
    "price_array",
    "price_greeks",
]
