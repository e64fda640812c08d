import io
import logging
import unittest
import unittest.mock

import numpy as np

import rheobal as rb
import rheobal.solver as solver


def three_branch_config(current=1):
    # branches[0] is branch 1, the nearest to the rectifier
    return rb.BalancerConfig(
        current,
        [
            rb.BranchInput(8, 10, 1),
            rb.BranchInput(9, 9, 0),
            rb.BranchInput(10, 8, 0),
        ],
    )


def result_values(result):
    values = [result.rectifier_voltage, result.total_current, result.any_negative_trim]
    for b in result.branches:
        values.append(vars(b))
    return values


class IntegratedTest(unittest.TestCase):
    @unittest.mock.patch("sys.stdout", new_callable=io.StringIO)
    def assert_print(self, path, expected, mock_stdout):
        fields = rb.Fields(path)
        report = rb.calculate(fields)
        print(report)
        output = mock_stdout.getvalue()
        self.assertEqual(output, expected)

    def test_doc_three_branches(self):
        path = "doc/three_branches.csv"
        expected = (
            "Rectifier voltage \t= 16.000\n"
            "Total current \t= 6.000\n"
            "Branch 3: R(3) = 5.000, V(3) = 10.000, reo(31) = 0.000, reo(32) = 2.000\n"
            "Branch 2: R(2) = 2.500, V(2) = 10.000, reo(21) = 1.000, reo(22) = 1.000\n"
            "Branch 1: R(1) = 2.667, V(1) = 16.000, reo(11) = 2.000, reo(12) = 0.000\n"
            "Calculation completed successfully.\n"
        )
        self.assert_print(path, expected)

    def test_doc_four_branches(self):
        path = "doc/four_branches.csv"
        expected = (
            "Rectifier voltage \t= 6.000\n"
            "Total current \t= 4.000\n"
            "Branch 4: R(4) = 3.500, V(4) = 3.500, reo(41) = 0.000, reo(42) = 2.000\n"
            "Branch 3: R(3) = 2.000, V(3) = 4.000, reo(31) = 2.000, reo(32) = -1.000 !\n"
            "Branch 2: R(2) = 1.333, V(2) = 4.000, reo(21) = 2.000, reo(22) = 2.000\n"
            "Branch 1: R(1) = 1.500, V(1) = 6.000, reo(11) = 1.000, reo(12) = 0.500\n"
            "Warning! Negative rheostats were computed (marked with !). "
            "The system can't be balanced with these input values.\n"
        )
        self.assert_print(path, expected)

    def test_doc_zero_current(self):
        path = "doc/zero_current.csv"
        expected = "The sub-branch current (i_subr) can't be zero.\n"
        self.assert_print(path, expected)


class Balancer(unittest.TestCase):
    def test_farthest_branch(self):
        result = rb.balance(three_branch_config())
        b3 = result.branch(3)
        assert b3.trim_a == 0
        assert b3.trim_b == 2
        assert b3.series_target == 10
        assert b3.parallel_equivalent == 5
        assert b3.branch_resistance == 5
        assert b3.branch_voltage == 10

    def test_next_branch(self):
        result = rb.balance(three_branch_config())
        b2 = result.branch(2)
        assert b2.series_target == 10
        assert b2.trim_a == 1
        assert b2.trim_b == 1
        assert b2.parallel_equivalent == 2.5
        assert b2.branch_resistance == 2.5
        assert b2.branch_voltage == 10

    def test_nearest_branch(self):
        result = rb.balance(three_branch_config())
        b1 = result.branch(1)
        self.assertAlmostEqual(b1.series_target, 10)
        self.assertAlmostEqual(b1.parallel_equivalent, 1 / 0.6)
        self.assertAlmostEqual(b1.branch_resistance, 1 / 0.6 + 1)
        self.assertAlmostEqual(b1.branch_voltage, 16)
        assert result.rectifier_voltage == b1.branch_voltage
        assert result.rectifier_voltage == b1.branch_resistance * (6 * 1)
        assert not result.any_negative_trim

    def test_total_current(self):
        for current in [1, 0.5, -2, 1e-3, 7.25]:
            for n in range(1, 6):
                config = rb.BalancerConfig(
                    current, [rb.BranchInput(3, 4, 1)] * n
                )
                result = rb.balance(config)
                assert result.total_current == 2 * n * current
                assert len(result.branches) == n

    def test_rectifier_voltage(self):
        # both forms must agree exactly
        for n in range(1, 6):
            branches = [rb.BranchInput(1.1 * r, 2.3, 0.7) for r in range(1, n + 1)]
            result = rb.balance(rb.BalancerConfig(0.3, branches))
            b1 = result.branch(1)
            assert result.rectifier_voltage == b1.branch_voltage
            assert result.rectifier_voltage == b1.branch_resistance * (2 * n * np.float64(0.3))

    def test_single_branch(self):
        result = rb.balance(rb.BalancerConfig(2, [rb.BranchInput(4, 6, 1)]))
        b1 = result.branch(1)
        assert b1.trims == (2, 0)
        assert b1.series_target == 6
        assert b1.branch_resistance == 4
        assert b1.branch_voltage == 16
        assert result.rectifier_voltage == 16
        assert result.total_current == 4

    def test_zero_current(self):
        for n in range(1, 5):
            config = rb.BalancerConfig(0, [rb.BranchInput(1, 2, 3)] * n)
            with self.assertRaises(rb.ZeroCurrentError):
                rb.balance(config)
        with self.assertRaises(ValueError):
            rb.balance(rb.BalancerConfig(0.0, [rb.BranchInput(1, 2, 3)]))

    def test_farthest_tie_break(self):
        inputs = [(10, 8), (8, 10), (5, 5), (0, 3), (2.5, 0.1)]
        for arm_a, arm_b in inputs:
            config = rb.BalancerConfig(1, [rb.BranchInput(arm_a, arm_b, 0.2)])
            b1 = rb.balance(config).branch(1)
            assert b1.series_target == max(arm_a, arm_b)
            assert min(b1.trims) == 0

    def test_swap_farthest_arms(self):
        config = three_branch_config()
        swapped = three_branch_config()
        swapped.branches[2] = rb.BranchInput(8, 10, 0)
        result = rb.balance(config)
        other = rb.balance(swapped)
        assert result.branch(3).trims == other.branch(3).trims[::-1]
        for a, b in zip(result.branches, other.branches):
            assert a.series_target == b.series_target
            assert a.parallel_equivalent == b.parallel_equivalent
            assert a.branch_resistance == b.branch_resistance
            assert a.branch_voltage == b.branch_voltage
        assert result.branch(1).trims == other.branch(1).trims
        assert result.rectifier_voltage == other.rectifier_voltage

    def test_idempotence(self):
        config = three_branch_config(current=0.37)
        first = rb.balance(config)
        second = rb.balance(config)
        assert first is not second
        assert result_values(first) == result_values(second)

    def test_negative_trim(self):
        config = three_branch_config()
        config.branches[1] = rb.BranchInput(15, 9, 0)
        result = rb.balance(config)
        assert result.branch(2).trim_a == -5
        assert result.branch(2).trim_b == 1
        assert result.any_negative_trim

    def test_negative_current(self):
        result = rb.balance(three_branch_config(current=-1))
        assert result.branch(3).branch_voltage == -10
        assert result.branch(2).series_target == 10
        assert result.total_current == -6

    def test_zero_resistance_farthest(self):
        config = rb.BalancerConfig(
            1, [rb.BranchInput(5, 5, 0), rb.BranchInput(0, 0, 0)]
        )
        result = rb.balance(config)
        b2 = result.branch(2)
        assert b2.branch_resistance == 0
        b1 = result.branch(1)
        assert b1.series_target == 0
        assert b1.trims == (-5, -5)
        # 1 / (2/0 + 1/0) = 1 / inf
        assert b1.parallel_equivalent == 0
        assert result.any_negative_trim

    def test_non_finite_propagation(self):
        config = rb.BalancerConfig(
            1,
            [
                rb.BranchInput(1, 1, -np.inf),
                rb.BranchInput(1, 1, 0),
                rb.BranchInput(1, 1, np.inf),
            ],
        )
        with self.assertLogs(level="WARNING"):
            result = rb.balance(config)
        assert np.isinf(result.branch(3).branch_voltage)
        assert np.isinf(result.branch(2).series_target)
        assert np.isinf(result.branch(2).parallel_equivalent)
        assert np.isinf(result.branch(2).trim_a)
        assert np.isnan(result.branch(1).branch_resistance)
        assert np.isnan(result.rectifier_voltage)
        assert not result.branch(1).is_finite()
        assert not result.any_negative_trim

    def test_empty_config(self):
        with self.assertRaises(ValueError):
            rb.BalancerConfig(1, [])

    def test_branch_index(self):
        config = three_branch_config()
        assert config.branch_count == 3
        assert config.branch(3).arm_a == 10
        for r in [0, 4, -1]:
            with self.assertRaises(IndexError):
                config.branch(r)
        result = rb.balance(config)
        assert [b.index for b in result.branches] == [1, 2, 3]
        with self.assertRaises(IndexError):
            result.branch(4)


class InputFields(unittest.TestCase):
    def test_parse_value(self):
        inputs = [
            (None, 0.0),
            ("", 0.0),
            ("  ", 0.0),
            ("abc", 0.0),
            ("nan", 0.0),
            ("12", 12.0),
            (" 0.25 ", 0.25),
            ("-3e2", -300.0),
            (4, 4.0),
        ]
        for raw, expected in inputs:
            assert rb.parse_value(raw) == expected
        assert rb.parse_value("inf") == np.inf

    def test_from_mapping(self):
        fields = rb.Fields.from_mapping(
            {"i_subr": "2", "RA_21": "7", "ra_22": "oops", " rc_2 ": "1"}
        )
        assert fields.branch_count == 2
        config = fields.config()
        assert config.sub_branch_current == 2
        assert config.branch_count == 2
        b2 = config.branch(2)
        assert (b2.arm_a, b2.arm_b, b2.contact_r) == (7, 0, 1)
        b1 = config.branch(1)
        assert (b1.arm_a, b1.arm_b, b1.contact_r) == (0, 0, 0)

    def test_forced_branch_count(self):
        fields = rb.Fields.from_mapping({"i_subr": "1", "ra_11": "3"})
        config = fields.config(4)
        assert config.branch_count == 4
        assert config.branch(4).arm_a == 0
        with self.assertRaises(ValueError):
            fields.config(0)

    def test_missing_current(self):
        fields = rb.Fields.from_mapping({"ra_11": "3", "ra_12": "4"})
        with self.assertRaises(rb.ZeroCurrentError):
            rb.balance(fields.config())
        report = rb.calculate(fields)
        assert report.result is None
        assert report.is_error

    def test_bad_fields(self):
        bad_inputs = [
            {"r_11": "1"},
            {"ra_13": "1"},
            {"ra_01": "1"},
            {"rc_": "1"},
            {"current": "1"},
        ]
        for bad in bad_inputs:
            with self.assertRaises(ValueError):
                rb.Fields.from_mapping(bad)

    def test_duplicate_field(self):
        fields = rb.Fields()
        fields.process_field("ra_11", "1")
        with self.assertRaises(ValueError):
            fields.process_field("RA_11", "2")

    def test_multi_digit_branch(self):
        fields = rb.Fields.from_mapping({"ra_121": "5", "ra_112": "6"})
        assert fields.branch_count == 12
        config = fields.config()
        assert config.branch(12).arm_a == 5
        assert config.branch(11).arm_b == 6

    def test_rows(self):
        fields = rb.Fields()
        fields.process_row([])
        fields.process_row(["# a comment"])
        fields.process_row(["i_subr", "1"])
        with self.assertRaises(ValueError):
            fields.process_row(["ra_11"])
        with self.assertRaises(ValueError):
            fields.process_row(["ra_11", "1", "2"])
        assert fields.values == {"i_subr": "1"}

    def test_read_file(self):
        fields = rb.Fields("doc/four_branches.csv")
        assert fields.branch_count == 4
        assert fields.value("rc_3") == 0.25
        with self.assertRaises(ValueError):
            rb.Fields("doc/bad_row.csv")
        with self.assertRaises(FileNotFoundError):
            rb.Fields("doc/does_not_exist.csv")


class Reports(unittest.TestCase):
    def test_format_value(self):
        assert rb.format_value(1) == "1.000"
        assert rb.format_value(2 / 3) == "0.667"
        assert rb.format_value(-0.5) == "-0.500"
        assert rb.format_value(np.inf) == "inf"
        assert rb.format_value(np.nan) == "nan"

    def test_status(self):
        report = rb.Report(result=rb.balance(three_branch_config()))
        assert not report.is_error
        assert report.status == "Calculation completed successfully."
        config = three_branch_config()
        config.branches[0] = rb.BranchInput(30, 9, 0)
        report = rb.Report(result=rb.balance(config))
        assert report.is_error
        assert report.status.startswith("Warning!")
        assert "reo(11) = -20.000 !" in str(report)
        report = rb.Report(error=rb.ZeroCurrentError("zero"))
        assert report.is_error
        assert str(report) == "The sub-branch current (i_subr) can't be zero."


class CommandLine(unittest.TestCase):
    @unittest.mock.patch("sys.stdout", new_callable=io.StringIO)
    def run_main(self, argv, mock_stdout):
        with unittest.mock.patch("sys.argv", ["rheobal-solver"] + argv):
            try:
                solver.main()
            except SystemExit as e:
                return e.code, mock_stdout.getvalue()
        return 0, mock_stdout.getvalue()

    def test_solve_file(self):
        code, output = self.run_main(["doc/three_branches.csv"])
        assert code == 0
        assert output.startswith("Rectifier voltage \t= 16.000\n")

    def test_forced_branches(self):
        code, output = self.run_main(["-n", "4", "doc/three_branches.csv"])
        assert code == 0
        assert "Branch 4: R(4) = 0.000" in output
        assert "Total current \t= 8.000" in output

    def test_negative_trims_exit_code(self):
        code, output = self.run_main(["doc/four_branches.csv"])
        assert code == 0
        assert "Warning!" in output

    def test_errors(self):
        for argv in [
            ["doc/zero_current.csv"],
            ["doc/bad_row.csv"],
            ["doc/does_not_exist.csv"],
            ["-n", "0", "doc/three_branches.csv"],
        ]:
            code, output = self.run_main(argv)
            assert code == 1


if __name__ == "__main__":
    logging.getLogger().setLevel(logging.CRITICAL)
    unittest.main()
