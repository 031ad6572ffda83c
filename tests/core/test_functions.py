# tests/core/test_functions.py

import pytest
import numpy as np
import matplotlib.pyplot as plt

from GRSIFit.core.functions import ParametricFunction, linear_background, quadratic_background


def _line(x, p):
    return p[0] + p[1] * x


@pytest.fixture
def line():
    func = ParametricFunction("line", _line, -1.0, 1.0, n_params=2, param_names=["a", "b"])
    func.set_parameters([1.0, 2.0])
    return func


class TestParameters:
    """Test parameter storage."""

    def test_defaults(self):
        """Test default range, names and zeroed parameters."""
        func = ParametricFunction("f", _line, n_params=3)
        assert func.get_range() == (0.0, 1.0)
        assert func.param_names == ["p0", "p1", "p2"]
        np.testing.assert_array_equal(func.get_parameters(), np.zeros(3))
        assert func.covariance is None


    def test_names_must_match_count(self):
        """Test that the name list must match the parameter count."""
        with pytest.raises(ValueError, match="parameter names"):
            ParametricFunction("f", _line, n_params=2, param_names=["a"])


    def test_get_parameters_returns_copy(self, line):
        """Test that returned parameters do not alias internal storage."""
        params = line.get_parameters()
        params[0] = 100.0
        assert line.get_parameter(0) == 1.0


    def test_set_parameters_truncates(self, line):
        """Test that extra values are ignored."""
        line.set_parameters([5.0, 6.0, 7.0])
        np.testing.assert_array_equal(line.get_parameters(), [5.0, 6.0])


    def test_set_parameters_partial(self, line):
        """Test that a short vector only overwrites leading parameters."""
        line.set_parameters([5.0])
        np.testing.assert_array_equal(line.get_parameters(), [5.0, 2.0])


    def test_errors(self, line):
        """Test parameter error and name accessors."""
        line.set_par_errors([0.1, 0.2])
        assert line.get_par_error(1) == 0.2
        assert line.get_par_name(1) == "b"


class TestEvaluation:
    """Test function evaluation."""

    def test_call_uses_own_parameters(self, line):
        """Test evaluation with the stored parameters."""
        np.testing.assert_allclose(line(np.array([0.0, 1.0])), [1.0, 3.0])


    def test_eval_par_with_explicit_parameters(self, line):
        """Test evaluation with explicit parameters leaves stored ones untouched."""
        assert line.eval_par(2.0, [0.0, 1.0]) == 2.0
        assert line.get_parameter(1) == 2.0


    def test_released_function_cannot_evaluate(self, line):
        """Test that a released function refuses to evaluate."""
        line.release()
        assert line.released
        assert line.n_params == 0
        with pytest.raises(RuntimeError, match="released"):
            line(0.0)


class TestRange:
    """Test the evaluation range."""

    def test_set_range(self, line):
        """Test setting the evaluation range."""
        line.set_range(-5, 5)
        assert line.get_range() == (-5.0, 5.0)


    def test_inverted_range(self, line):
        """Test that an inverted range is rejected."""
        with pytest.raises(ValueError, match="Invalid range"):
            line.set_range(2.0, 1.0)


def test_draw_uses_line_attributes(line):
    """Test that drawing samples the range with the line colour and style."""
    line.line_color = "blue"
    line.line_style = "--"
    fig, ax = plt.subplots()
    lines = line.draw(ax, n_points=11)

    assert len(lines) == 1
    np.testing.assert_allclose(lines[0].get_xdata(), np.linspace(-1, 1, 11))
    np.testing.assert_allclose(lines[0].get_ydata(), 1.0 + 2.0 * np.linspace(-1, 1, 11))
    assert lines[0].get_color() == "blue"
    assert lines[0].get_linestyle() == "--"
    plt.close(fig)


def test_draw_constant_curve():
    """Test drawing a function that returns a scalar."""
    const = ParametricFunction("const", lambda x, p: p[0], n_params=1)
    const.set_parameters([3.0])
    fig, ax = plt.subplots()
    lines = const.draw(ax, n_points=5)
    np.testing.assert_array_equal(lines[0].get_ydata(), np.full(5, 3.0))
    plt.close(fig)


class TestBackgrounds:
    """Test polynomial global backgrounds."""

    def test_linear(self):
        """Test the linear global background."""
        bg = linear_background(10.0, 20.0)
        bg.set_parameters([2.0, 0.5])
        assert bg.get_range() == (10.0, 20.0)
        assert bg.param_names == ["bg_a", "bg_b"]
        np.testing.assert_allclose(bg(np.array([10.0, 12.0])), [7.0, 8.0])


    def test_quadratic(self):
        """Test the quadratic global background."""
        bg = quadratic_background(0.0, 5.0, name="bg2")
        bg.set_parameters([1.0, 0.0, 2.0])
        assert bg.name == "bg2"
        np.testing.assert_allclose(bg(np.array([0.0, 2.0])), [1.0, 9.0])
