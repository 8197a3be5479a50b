"""Numeric formula functions.

Trigonometric, inverse trigonometric, hyperbolic, exponential and
logarithmic, power and root, rounding, special functions, bit
operations and named constants.
"""

from __future__ import annotations

import math
from typing import Any, Callable

from gridcalc.formulas.errors import (
    DivisionError,
    FormulaDomainError,
    check_arity,
)
from gridcalc.formulas.values import to_int, to_number

# Denominators with a smaller magnitude count as zero.
DIVISION_EPSILON = 1e-10

PHI = (1 + math.sqrt(5)) / 2

CONSTANTS: dict[str, float] = {
    "PI": math.pi,
    "E": math.e,
    "PHI": PHI,
    "INF": math.inf,
    "NAN": math.nan,
}


def _apply(name: str, fn: Callable[..., float], *xs: float) -> float:
    """Call a math routine, mapping domain and overflow failures."""
    try:
        return fn(*xs)
    except ValueError:
        raise FormulaDomainError(name) from None
    except OverflowError:
        raise FormulaDomainError(name, f"{name}: result out of range") from None


def _safe_reciprocal(name: str, denom: float) -> float:
    if abs(denom) < DIVISION_EPSILON:
        raise DivisionError(name, math.inf)
    return 1.0 / denom


def _unary(name: str, fn: Callable[[float], float]) -> Callable[[list], float]:
    def _impl(args: list) -> float:
        check_arity(name, args, 1, 1)
        return _apply(name, fn, to_number(args[0], name))

    _impl.__name__ = f"_fn_{name.lower()}"
    return _impl


def _reciprocal(name: str, fn: Callable[[float], float]) -> Callable[[list], float]:
    """1 / fn(x), reporting a division error for near-zero fn(x)."""

    def _impl(args: list) -> float:
        check_arity(name, args, 1, 1)
        return _safe_reciprocal(name, _apply(name, fn, to_number(args[0], name)))

    _impl.__name__ = f"_fn_{name.lower()}"
    return _impl


def _of_reciprocal(name: str, fn: Callable[[float], float]) -> Callable[[list], float]:
    """fn(1 / x), reporting a division error for near-zero x."""

    def _impl(args: list) -> float:
        check_arity(name, args, 1, 1)
        x = to_number(args[0], name)
        return _apply(name, fn, _safe_reciprocal(name, x))

    _impl.__name__ = f"_fn_{name.lower()}"
    return _impl


def _binary(name: str, fn: Callable[[float, float], float]) -> Callable[[list], float]:
    def _impl(args: list) -> float:
        check_arity(name, args, 2, 2)
        return _apply(name, fn, to_number(args[0], name), to_number(args[1], name))

    _impl.__name__ = f"_fn_{name.lower()}"
    return _impl


def _constant(name: str) -> Callable[[list], float]:
    value = CONSTANTS[name]

    def _impl(args: list) -> float:
        check_arity(name, args, 0, 0)
        return value

    _impl.__name__ = f"_fn_{name.lower()}"
    return _impl


# ---------------------------------------------------------------------------
# Functions that need more than a one-line wrapper
# ---------------------------------------------------------------------------


def _round_half_away(x: float, digits: int) -> float:
    if not math.isfinite(x) or digits > 308:
        return x
    if digits < -308:
        return math.copysign(0.0, x)
    scale = 10.0 ** digits
    scaled = abs(x) * scale
    # Past 2**52 a double has no fractional part left to round.
    if scaled >= 2.0 ** 52:
        return x
    return math.copysign(math.floor(scaled + 0.5) / scale, x)


def _fn_log(args: list) -> float:
    """LOG(x [, base]) -- natural logarithm unless a base is given."""
    check_arity("LOG", args, 1, 2)
    x = to_number(args[0], "LOG")
    if x <= 0:
        raise FormulaDomainError("LOG")
    if len(args) == 1:
        return math.log(x)
    base = to_number(args[1], "LOG")
    if base <= 0 or base == 1:
        raise FormulaDomainError("LOG", "LOG: invalid base")
    return math.log(x, base)


def _fn_round(args: list) -> float:
    """ROUND(x [, digits]) -- half away from zero."""
    check_arity("ROUND", args, 1, 2)
    x = to_number(args[0], "ROUND")
    digits = to_int(args[1], "ROUND") if len(args) == 2 else 0
    return _round_half_away(x, digits)


def _fn_roundto(args: list) -> float:
    check_arity("ROUNDTO", args, 2, 2)
    return _round_half_away(to_number(args[0], "ROUNDTO"), to_int(args[1], "ROUNDTO"))


def _fn_sign(args: list) -> float:
    check_arity("SIGN", args, 1, 1)
    x = to_number(args[0], "SIGN")
    if x > 0:
        return 1.0
    if x < 0:
        return -1.0
    return 0.0


def _fn_clamp(args: list) -> float:
    """CLAMP(x, low, high)."""
    check_arity("CLAMP", args, 3, 3)
    x, low, high = (to_number(a, "CLAMP") for a in args)
    if low > high:
        raise FormulaDomainError("CLAMP", "CLAMP: low bound exceeds high bound")
    return min(max(x, low), high)


def _fn_lerp(args: list) -> float:
    """LERP(a, b, t) -- linear interpolation."""
    check_arity("LERP", args, 3, 3)
    a, b, t = (to_number(v, "LERP") for v in args)
    return a + t * (b - a)


def _fn_mod(args: list) -> float:
    check_arity("MOD", args, 2, 2)
    a = to_number(args[0], "MOD")
    b = to_number(args[1], "MOD")
    if abs(b) < DIVISION_EPSILON:
        raise DivisionError("MOD", math.nan)
    return math.fmod(a, b)


def _fn_remainder(args: list) -> float:
    check_arity("REMAINDER", args, 2, 2)
    a = to_number(args[0], "REMAINDER")
    b = to_number(args[1], "REMAINDER")
    if abs(b) < DIVISION_EPSILON:
        raise DivisionError("REMAINDER", math.nan)
    return math.remainder(a, b)


def _fn_factorial(args: list) -> float:
    check_arity("FACTORIAL", args, 1, 1)
    n = to_int(args[0], "FACTORIAL")
    if n < 0:
        raise FormulaDomainError("FACTORIAL")
    if n > 170:
        return math.inf
    return float(math.factorial(n))


def _fn_gcd(args: list) -> float:
    check_arity("GCD", args, 2, None)
    return float(math.gcd(*(to_int(a, "GCD") for a in args)))


def _fn_lcm(args: list) -> float:
    check_arity("LCM", args, 2, None)
    return float(math.lcm(*(to_int(a, "LCM") for a in args)))


# Bessel functions: rational approximations below x = 8, asymptotic
# expansions above it (absolute error around 1e-8).

_TWO_OVER_PI = 0.636619772


def _bessel_j0(x: float) -> float:
    ax = abs(x)
    if ax < 8.0:
        y = x * x
        num = 57568490574.0 + y * (-13362590354.0 + y * (651619640.7 + y * (
            -11214424.18 + y * (77392.33017 + y * -184.9052456))))
        den = 57568490411.0 + y * (1029532985.0 + y * (9494680.718 + y * (
            59272.64853 + y * (267.8532712 + y))))
        return num / den
    z = 8.0 / ax
    y = z * z
    xx = ax - 0.785398164
    p = 1.0 + y * (-0.1098628627e-2 + y * (0.2734510407e-4 + y * (
        -0.2073370639e-5 + y * 0.2093887211e-6)))
    q = -0.1562499995e-1 + y * (0.1430488765e-3 + y * (-0.6911147651e-5 + y * (
        0.7621095161e-6 - y * 0.934935152e-7)))
    return math.sqrt(_TWO_OVER_PI / ax) * (math.cos(xx) * p - z * math.sin(xx) * q)


def _bessel_j1(x: float) -> float:
    ax = abs(x)
    if ax < 8.0:
        y = x * x
        num = x * (72362614232.0 + y * (-7895059235.0 + y * (242396853.1 + y * (
            -2972611.439 + y * (15704.48260 + y * -30.16036606)))))
        den = 144725228442.0 + y * (2300535178.0 + y * (18583304.74 + y * (
            99447.43394 + y * (376.9991397 + y))))
        return num / den
    z = 8.0 / ax
    y = z * z
    xx = ax - 2.356194491
    p = 1.0 + y * (0.183105e-2 + y * (-0.3516396496e-4 + y * (
        0.2457520174e-5 + y * -0.240337019e-6)))
    q = 0.04687499995 + y * (-0.2002690873e-3 + y * (0.8449199096e-5 + y * (
        -0.88228987e-6 + y * 0.105787412e-6)))
    result = math.sqrt(_TWO_OVER_PI / ax) * (math.cos(xx) * p - z * math.sin(xx) * q)
    return -result if x < 0 else result


def _bessel_y0(x: float) -> float:
    if x < 8.0:
        y = x * x
        num = -2957821389.0 + y * (7062834065.0 + y * (-512359803.6 + y * (
            10879881.29 + y * (-86327.92757 + y * 228.4622733))))
        den = 40076544269.0 + y * (745249964.8 + y * (7189466.438 + y * (
            47447.26470 + y * (226.1030244 + y))))
        return num / den + _TWO_OVER_PI * _bessel_j0(x) * math.log(x)
    z = 8.0 / x
    y = z * z
    xx = x - 0.785398164
    p = 1.0 + y * (-0.1098628627e-2 + y * (0.2734510407e-4 + y * (
        -0.2073370639e-5 + y * 0.2093887211e-6)))
    q = -0.1562499995e-1 + y * (0.1430488765e-3 + y * (-0.6911147651e-5 + y * (
        0.7621095161e-6 - y * 0.934935152e-7)))
    return math.sqrt(_TWO_OVER_PI / x) * (math.sin(xx) * p + z * math.cos(xx) * q)


def _bessel_y1(x: float) -> float:
    if x < 8.0:
        y = x * x
        num = x * (-0.4900604943e13 + y * (0.1275274390e13 + y * (-0.5153438139e11 + y * (
            0.7349264551e9 + y * (-0.4237922726e7 + y * 0.8511937935e4)))))
        den = 0.2499580570e14 + y * (0.4244419664e12 + y * (0.3733650367e10 + y * (
            0.2245904002e8 + y * (0.1020426050e6 + y * (0.3549632885e3 + y)))))
        return num / den + _TWO_OVER_PI * (_bessel_j1(x) * math.log(x) - 1.0 / x)
    z = 8.0 / x
    y = z * z
    xx = x - 2.356194491
    p = 1.0 + y * (0.183105e-2 + y * (-0.3516396496e-4 + y * (
        0.2457520174e-5 + y * -0.240337019e-6)))
    q = 0.04687499995 + y * (-0.2002690873e-3 + y * (0.8449199096e-5 + y * (
        -0.88228987e-6 + y * 0.105787412e-6)))
    return math.sqrt(_TWO_OVER_PI / x) * (math.sin(xx) * p + z * math.cos(xx) * q)


def _bessel_yn(n: int, x: float) -> float:
    """Second-kind Bessel function of integer order; Y(-n) = (-1)^n Y(n)."""
    sign = -1.0 if n < 0 and n % 2 else 1.0
    n = abs(n)
    if n == 0:
        return _bessel_y0(x)
    prev, cur = _bessel_y0(x), _bessel_y1(x)
    for k in range(1, n):
        prev, cur = cur, 2.0 * k / x * cur - prev
    return sign * cur


def _fn_yn(args: list) -> float:
    """YN(n, x) -- Bessel function of the second kind, order n; x must be > 0."""
    check_arity("YN", args, 2, 2)
    n = to_int(args[0], "YN")
    x = to_number(args[1], "YN")
    if x <= 0:
        raise FormulaDomainError("YN")
    return _apply("YN", _bessel_yn, n, x)




def _bitwise(name: str, op: Callable[[int, int], int]) -> Callable[[list], float]:
    def _impl(args: list) -> float:
        check_arity(name, args, 2, 2)
        a = to_int(args[0], name)
        b = to_int(args[1], name)
        return float(op(a, b))

    _impl.__name__ = f"_fn_{name.lower()}"
    return _impl


def _shift(name: str, left: bool) -> Callable[[list], float]:
    def _impl(args: list) -> float:
        check_arity(name, args, 2, 2)
        value = to_int(args[0], name)
        amount = to_int(args[1], name)
        if amount < 0 or amount > 63:
            raise FormulaDomainError(name, f"{name}: shift amount must be in [0, 63]")
        return float(value << amount if left else value >> amount)

    _impl.__name__ = f"_fn_{name.lower()}"
    return _impl


MATH_FUNCTIONS: dict[str, Any] = {
    # Trigonometric
    "SIN": _unary("SIN", math.sin),
    "COS": _unary("COS", math.cos),
    "TAN": _unary("TAN", math.tan),
    "CTAN": _reciprocal("CTAN", math.tan),
    "SEC": _reciprocal("SEC", math.cos),
    "CSEC": _reciprocal("CSEC", math.sin),
    "RAD": _unary("RAD", math.radians),
    "DEG": _unary("DEG", math.degrees),
    # Inverse trigonometric
    "ASIN": _unary("ASIN", math.asin),
    "ACOS": _unary("ACOS", math.acos),
    "ATAN": _unary("ATAN", math.atan),
    "ATAN2": _binary("ATAN2", math.atan2),
    "ACTAN": _unary("ACTAN", lambda x: math.pi / 2 - math.atan(x)),
    "ASEC": _of_reciprocal("ASEC", math.acos),
    "ACSC": _of_reciprocal("ACSC", math.asin),
    # Hyperbolic
    "SINH": _unary("SINH", math.sinh),
    "COSH": _unary("COSH", math.cosh),
    "TANH": _unary("TANH", math.tanh),
    "CTANH": _reciprocal("CTANH", math.tanh),
    "SECH": _reciprocal("SECH", math.cosh),
    "CSCH": _reciprocal("CSCH", math.sinh),
    # Inverse hyperbolic
    "ASINH": _unary("ASINH", math.asinh),
    "ACOSH": _unary("ACOSH", math.acosh),
    "ATANH": _unary("ATANH", math.atanh),
    "ASECH": _of_reciprocal("ASECH", math.acosh),
    "ACSCH": _of_reciprocal("ACSCH", math.asinh),
    "ACOTH": _of_reciprocal("ACOTH", math.atanh),
    # Exponential and logarithmic
    "EXP": _unary("EXP", math.exp),
    "LOG": _fn_log,
    "LN": _unary("LN", math.log),
    "LOG10": _unary("LOG10", math.log10),
    "LOG2": _unary("LOG2", math.log2),
    # Power and roots
    "SQRT": _unary("SQRT", math.sqrt),
    "CBRT": _unary("CBRT", lambda x: math.copysign(abs(x) ** (1.0 / 3.0), x)),
    "POW": _binary("POW", math.pow),
    "HYPOT": _binary("HYPOT", math.hypot),
    # Rounding and precision
    "ABS": _unary("ABS", abs),
    "CEIL": _unary("CEIL", lambda x: float(math.ceil(x))),
    "FLOOR": _unary("FLOOR", lambda x: float(math.floor(x))),
    "TRUNC": _unary("TRUNC", lambda x: float(math.trunc(x))),
    "ROUND": _fn_round,
    "ROUNDTO": _fn_roundto,
    "SIGN": _fn_sign,
    "CLAMP": _fn_clamp,
    "LERP": _fn_lerp,
    "MOD": _fn_mod,
    "REMAINDER": _fn_remainder,
    "FACTORIAL": _fn_factorial,
    "GCD": _fn_gcd,
    "LCM": _fn_lcm,
    # Special
    "ERF": _unary("ERF", math.erf),
    "ERFC": _unary("ERFC", math.erfc),
    "GAMMA": _unary("GAMMA", math.gamma),
    "J0": _unary("J0", _bessel_j0),
    "J1": _unary("J1", _bessel_j1),
    "YN": _fn_yn,
    # Bit operations
    "BITAND": _bitwise("BITAND", lambda a, b: a & b),
    "BITOR": _bitwise("BITOR", lambda a, b: a | b),
    "BITXOR": _bitwise("BITXOR", lambda a, b: a ^ b),
    "BITSHIFTLEFT": _shift("BITSHIFTLEFT", left=True),
    "BITSHIFTRIGHT": _shift("BITSHIFTRIGHT", left=False),
    # Constants
    **{name: _constant(name) for name in CONSTANTS},
}
