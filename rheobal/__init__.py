"""Rheostat balancing of cascaded rectifier branches.

Provides, among others, the names meant for external usage:
    * balance(): computes trims, resistances and voltages
    * Fields: reads the named input fields from .csv files
    * Report: printable object storing the computation results

Example use case:
    from rheobal import Fields, calculate
    my_fields = Fields("path/to/fields.csv")
    my_report = calculate(my_fields)
    print(my_report)
"""

import logging

from rheobal.balancer import (
    BalancerConfig,
    BranchInput,
    BranchResult,
    OverallResult,
    ZeroCurrentError,
    balance,
)
from rheobal.fields import Fields, parse_value
from rheobal.report import Report, format_value
from rheobal.solver import calculate

logging.basicConfig(level=logging.ERROR)
