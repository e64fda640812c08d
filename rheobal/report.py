"""Text rendering of balance() results."""

from rheobal.balancer import ZeroCurrentError

DECIMALS = 3
NEGATIVE_FLAG = "!"

STATUS_OK = "Calculation completed successfully."
STATUS_NEGATIVE = (
    "Warning! Negative rheostats were computed (marked with !). "
    "The system can't be balanced with these input values."
)
STATUS_ZERO_CURRENT = "The sub-branch current (i_subr) can't be zero."


def format_value(value):
    return f"{value:.{DECIMALS}f}"


def format_trim(value):
    text = format_value(value)
    if value < 0:
        text += f" {NEGATIVE_FLAG}"
    return text


class Report:
    """Printable outcome of a calculation.

    Holds either an OverallResult or the error that prevented it. In the
    latter case only the status line is printed.
    """

    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error

    @property
    def is_error(self):
        if self.error is not None:
            return True
        return self.result is not None and self.result.any_negative_trim

    @property
    def status(self):
        if self.result is None:
            if isinstance(self.error, ZeroCurrentError):
                return STATUS_ZERO_CURRENT
            return "" if self.error is None else str(self.error)
        if self.result.any_negative_trim:
            return STATUS_NEGATIVE
        return STATUS_OK

    def lines(self):
        if self.result is None:
            return []
        output = [
            f"Rectifier voltage \t= {format_value(self.result.rectifier_voltage)}",
            f"Total current \t= {format_value(self.result.total_current)}",
        ]
        for branch in reversed(self.result.branches):
            r = branch.index
            output.append(
                f"Branch {r}: "
                f"R({r}) = {format_value(branch.branch_resistance)}, "
                f"V({r}) = {format_value(branch.branch_voltage)}, "
                f"reo({r}1) = {format_trim(branch.trim_a)}, "
                f"reo({r}2) = {format_trim(branch.trim_b)}"
            )
        return output

    def __str__(self):
        return "\n".join(self.lines() + [self.status])
