"""Script meant for command line usage, exported as `rheobal-solver`.

Also provides the calculate() function.
"""

import argparse
import logging

import rheobal.balancer as balancer
from rheobal.fields import Fields
from rheobal.report import Report

parser = argparse.ArgumentParser(
    description="Compute the rheostats balancing a cascaded rectifier network"
)
parser.add_argument(
    "fields_path", metavar="FILE", help="csv file with the input fields"
)
parser.add_argument(
    "-n",
    "--branches",
    type=int,
    default=None,
    help="number of branches (default: highest branch in FILE)",
)
parser.add_argument("-d", "--debug", action="store_true", help="log debug output")


def calculate(fields, branch_count=None):
    """Runs the balancer on a Fields object, returns a Report.

    Meant to be called again on every input change; nothing is kept
    between calls.
    """

    config = fields.config(branch_count)
    try:
        result = balancer.balance(config)
    except balancer.ZeroCurrentError as e:
        return Report(error=e)
    return Report(result=result)


def main():
    args = parser.parse_args()
    if args.debug:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        fields = Fields(args.fields_path)
    except FileNotFoundError:
        exit(1)
    except ValueError as e:
        print("Invalid field file\n")
        print(e)
        exit(1)

    try:
        report = calculate(fields, args.branches)
    except ValueError as e:
        print(e)
        exit(1)

    print(report)
    if report.result is None:
        exit(1)


if __name__ == "__main__":
    main()
