"""Core implementation of the cascaded balancing procedure.

A rectifier bridge is fed by N cascaded branches. Each branch has two
parallel arms (with nominal resistances arm_a and arm_b) and a fixed
contact resistance in series after them. Every arm must carry the same
sub-branch current I, so each arm gets a trim rheostat.

Branches are numbered by distance from the rectifier output: branch 1
is the nearest, branch N the farthest. The computation walks from N
down to 1; the voltage demanded by branch r+1 sets the series target of
the arms of branch r:

    target_r = V_(r+1) / I
    Rp_r = 1 / (2 / target_r + 1 / R_(r+1))
    R_r = Rp_r + Rc_r
    V_r = R_r * 2 (N - r + 1) I

The farthest branch has no downstream network and just balances its two
arms against each other.
"""

import logging

import numpy as np


class ZeroCurrentError(ValueError):
    """Raised when the sub-branch current is zero."""


class BranchInput:
    """Nominal values of one branch, in ohm.

    Attributes:
        * arm_a: resistance of the first arm
        * arm_b: resistance of the second arm
        * contact_r: series resistance added after the arms are combined
    """

    def __init__(self, arm_a, arm_b, contact_r):
        self.arm_a = arm_a
        self.arm_b = arm_b
        self.contact_r = contact_r

    def __repr__(self):
        return f"BranchInput({self.arm_a}, {self.arm_b}, {self.contact_r})"


class BalancerConfig:
    """Input of balance().

    `branches` is ordered by branch index: branches[0] is branch 1, the
    nearest to the rectifier, and branches[-1] is branch N, the farthest.

    Raises ValueError if no branch is given.
    """

    def __init__(self, sub_branch_current, branches):
        self.sub_branch_current = sub_branch_current
        self.branches = list(branches)
        if not self.branches:
            raise ValueError("At least one branch is required")

    @property
    def branch_count(self):
        return len(self.branches)

    def branch(self, r):
        return self.branches[_position(r, self.branch_count)]


class BranchResult:
    """Computed values of one branch.

    Attributes:
        * index: branch number, 1 is the nearest to the rectifier
        * trim_a, trim_b: rheostat values, negative when the branch
          can't be balanced with the given arms
        * series_target: resistance each arm must present
        * parallel_equivalent: arms in parallel with the downstream network
        * branch_resistance: parallel_equivalent + contact resistance
        * branch_voltage: voltage across the branch
    """

    def __init__(
        self,
        index,
        trim_a,
        trim_b,
        series_target,
        parallel_equivalent,
        branch_resistance,
        branch_voltage,
    ):
        self.index = index
        self.trim_a = trim_a
        self.trim_b = trim_b
        self.series_target = series_target
        self.parallel_equivalent = parallel_equivalent
        self.branch_resistance = branch_resistance
        self.branch_voltage = branch_voltage

    @property
    def trims(self):
        return (self.trim_a, self.trim_b)

    def is_finite(self):
        values = [
            self.trim_a,
            self.trim_b,
            self.series_target,
            self.parallel_equivalent,
            self.branch_resistance,
            self.branch_voltage,
        ]
        return bool(np.all(np.isfinite(values)))


class OverallResult:
    """Holds the result of balance().

    Attributes:
        * rectifier_voltage: voltage of branch 1 (volt)
        * total_current: 2 N I (ampere)
        * any_negative_trim: True if some rheostat came out negative
        * branches: BranchResult objects, same ordering as the config
    """

    def __init__(self, branches, total_current):
        self.branches = branches
        self.total_current = total_current
        self.rectifier_voltage = branches[0].branch_voltage
        self.any_negative_trim = any(
            trim < 0 for b in branches for trim in b.trims
        )

    @property
    def branch_count(self):
        return len(self.branches)

    def branch(self, r):
        return self.branches[_position(r, self.branch_count)]


def _position(r, n):
    if not 1 <= r <= n:
        raise IndexError(f"Branch {r} out of range 1..{n}")
    return r - 1


def balance_farthest(branch, current):
    arm_a = np.float64(branch.arm_a)
    arm_b = np.float64(branch.arm_b)
    trim_a = np.float64(0)
    trim_b = np.float64(0)
    # the larger arm is left alone, the smaller one is trimmed up to it
    if arm_a > arm_b:
        trim_b = arm_a - arm_b
    elif arm_b > arm_a:
        trim_a = arm_b - arm_a

    series_target = arm_a + trim_a
    parallel = series_target / 2
    resistance = parallel + np.float64(branch.contact_r)
    voltage = resistance * (2 * current)
    return trim_a, trim_b, series_target, parallel, resistance, voltage


def balance_next(branch, current, multiplier, downstream):
    series_target = downstream.branch_voltage / current
    trim_a = series_target - np.float64(branch.arm_a)
    trim_b = series_target - np.float64(branch.arm_b)
    # both arms and the downstream network, all in parallel
    parallel = 1 / ((2 / series_target) + (1 / downstream.branch_resistance))
    resistance = parallel + np.float64(branch.contact_r)
    voltage = resistance * (multiplier * current)
    return trim_a, trim_b, series_target, parallel, resistance, voltage


def balance(config):
    """Computes trims, resistances and voltages of every branch.

    Returns an OverallResult. Negative trims and non-finite values are
    part of the result, not errors.

    Raises ZeroCurrentError if the sub-branch current is zero.
    """

    current = np.float64(config.sub_branch_current)
    if current == 0:
        logging.error("Model error: the sub-branch current can't be zero")
        raise ZeroCurrentError("The sub-branch current can't be zero")

    n = config.branch_count
    results = [None] * n
    downstream = None
    # IEEE semantics: degenerate inputs give inf/nan instead of raising
    with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
        for r in range(n, 0, -1):
            branch = config.branch(r)
            if downstream is None:
                values = balance_farthest(branch, current)
            else:
                multiplier = 2 * (n - r + 1)
                values = balance_next(branch, current, multiplier, downstream)
            downstream = BranchResult(r, *values)
            if not downstream.is_finite():
                logging.warning(f"Branch {r} has non-finite values")
            logging.debug(
                f"branch {r}: target={downstream.series_target} "
                f"R={downstream.branch_resistance} V={downstream.branch_voltage}"
            )
            results[r - 1] = downstream

    total_current = 2 * n * current
    result = OverallResult(results, total_current)
    logging.debug(
        f"rectifier V={result.rectifier_voltage} I={result.total_current} "
        f"negative trims={result.any_negative_trim}"
    )
    return result
