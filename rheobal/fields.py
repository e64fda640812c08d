"""Reads the named input fields of the calculator.

A field file is a .csv file with one `name, value` pair per row:

    # sub-branch current
    i_subr, 1
    ra_31, 10
    ra_32, 8
    rc_3, 0

Field names are `i_subr` for the sub-branch current and, for branch r,
`ra_<r>1`, `ra_<r>2` (the two arms) and `rc_<r>` (contact resistance).
Values that are missing or can't be parsed count as 0.
"""

import csv
import logging
import math
import re

import rheobal.balancer as balancer

CURRENT_FIELD = "i_subr"
ARM_FIELD = re.compile(r"^ra_(?P<branch>[1-9][0-9]*)(?P<arm>[12])$")
CONTACT_FIELD = re.compile(r"^rc_(?P<branch>[1-9][0-9]*)$")

# CSV parsing
NAME_COL = 0
VALUE_COL = 1
ROW_LENGTH = 2


def arm_field(r, arm):
    return f"ra_{r}{arm}"


def contact_field(r):
    return f"rc_{r}"


def normalize_name(name):
    return name.strip().lower()


def field_branch(name):
    """Returns the branch index named by a field, 0 for the current.

    Raises ValueError for unknown field names.
    """

    if name == CURRENT_FIELD:
        return 0
    match = ARM_FIELD.match(name) or CONTACT_FIELD.match(name)
    if match is None:
        raise ValueError(f"Unknown field '{name}'")
    return int(match.group("branch"))


def parse_value(raw):
    """Converts a raw field value to float, 0.0 when not usable."""

    if raw is None:
        return 0.0
    text = str(raw).strip()
    if text == "":
        return 0.0
    try:
        value = float(text)
    except ValueError:
        logging.warning(f"Bad input: expected a number, got '{text}', using 0")
        return 0.0
    if math.isnan(value):
        return 0.0
    return value


class Fields:
    """Named raw input values.

    Sets the following attributes:
        * values: dictionary {field_name: raw value}, raw values are
          parsed lazily by value()
        * branch_count: highest branch index named by a field, at
          least 1

    Raises FileNotFoundError, ValueError when the field file can't be
    found or has a malformed row.
    """

    def __init__(self, path=None):
        self.values = {}
        self.branch_count = 1
        if path is not None:
            self.read_fields(path)

    @classmethod
    def from_mapping(cls, mapping):
        fields = cls()
        for name, raw in mapping.items():
            fields.process_field(name, raw)
        return fields

    def process_field(self, name, raw):
        """Stores a single field, updates the branch count"""

        key = normalize_name(name)
        if key in self.values:
            raise ValueError(f"Field '{key}' is defined twice")
        r = field_branch(key)
        self.values[key] = raw
        self.branch_count = max(self.branch_count, r)

    def process_row(self, data):
        # Skip comments and empty lines
        if data == [] or data[0].strip() == "" or data[0].lstrip()[0] == "#":
            return

        if len(data) != ROW_LENGTH:
            raise ValueError(
                f"Wrong number of columns for field {data[NAME_COL]}: "
                f"expected {ROW_LENGTH}, got {len(data)}"
            )
        self.process_field(data[NAME_COL], data[VALUE_COL])

    def read_fields(self, path):
        """Iterates over the field file to process rows"""

        try:
            infile = open(path, "r")
        except FileNotFoundError:
            logging.error(f"File '{path}' not found.")
            raise

        with infile:
            reader = csv.reader(infile, skipinitialspace=True)
            for data in reader:
                self.process_row(data)

        logging.debug(f"fields={self.values}")
        logging.debug(f"branch_count={self.branch_count}")

    def value(self, name):
        return parse_value(self.values.get(name))

    def config(self, branch_count=None):
        """Builds a BalancerConfig for branches 1..branch_count.

        Fields not given for those branches count as 0.
        """

        if branch_count is None:
            branch_count = self.branch_count
        if branch_count < 1:
            raise ValueError(f"Branch count must be at least 1, got {branch_count}")

        branches = []
        for r in range(1, branch_count + 1):
            branches.append(
                balancer.BranchInput(
                    self.value(arm_field(r, 1)),
                    self.value(arm_field(r, 2)),
                    self.value(contact_field(r)),
                )
            )
        return balancer.BalancerConfig(self.value(CURRENT_FIELD), branches)
