"""
Tests for EvaluableFunction parameter handling, evaluation and drawing.
"""

import numpy as np
import pytest
import matplotlib.pyplot as plt

from peakfit.core.errors import IndexOutOfRange, MisconfiguredComposition
from peakfit.core.function import EvaluableFunction


def make_line():
    f = EvaluableFunction("line", lambda x, p: p[0] + p[1] * x, 0.0, 10.0, 2,
                          param_names=["offset", "slope"])
    f.set_parameters([2.0, 0.5])
    return f


class TestEvaluation:
    """eval / eval_par with stored and explicit parameters."""

    def test_eval_uses_stored_parameters(self):
        f = make_line()
        assert f.eval(3.0) == pytest.approx(3.5)
        assert f(3.0) == pytest.approx(3.5)

    def test_eval_par_uses_explicit_vector(self):
        f = make_line()
        assert f.eval_par(3.0, [1.0, 1.0]) == pytest.approx(4.0)
        # stored values untouched
        assert list(f.get_parameters()) == [2.0, 0.5]

    def test_eval_par_wrong_length(self):
        f = make_line()
        with pytest.raises(MisconfiguredComposition):
            f.eval_par(3.0, [1.0, 1.0, 1.0])

    def test_range_not_enforced(self):
        """The stored range is cosmetic: evaluation outside it still works."""
        f = make_line()
        assert f.eval(100.0) == pytest.approx(52.0)
        assert f.eval(-4.0) == pytest.approx(0.0)

    def test_vectorized(self):
        f = make_line()
        x = np.array([0.0, 2.0, 4.0])
        np.testing.assert_allclose(f.eval(x), [2.0, 3.0, 4.0])


class TestParameters:
    """Parameter access, names, fixing and limits."""

    @pytest.mark.parametrize("index", [-1, 2, 10])
    def test_out_of_range_index(self, index):
        f = make_line()
        with pytest.raises(IndexOutOfRange):
            f.get_parameter(index)
        with pytest.raises(IndexOutOfRange):
            f.set_parameter(index, 1.0)

    def test_index_error_is_catchable_as_indexerror(self):
        with pytest.raises(IndexError):
            make_line().get_parameter(5)

    def test_non_integer_index_rejected(self):
        f = make_line()
        with pytest.raises(TypeError):
            f.get_parameter(1.5)
        with pytest.raises(TypeError):
            f.fix_parameter(0.5)
        assert not f.fixed.any()

    def test_numpy_integer_index(self):
        f = make_line()
        assert f.get_parameter(np.int64(1)) == f.get_parameter(1)

    def test_get_parameters_is_copy(self):
        f = make_line()
        values = f.get_parameters()
        values[0] = 99.0
        assert f.get_parameter(0) == 2.0

    def test_set_parameters_wrong_length(self):
        with pytest.raises(MisconfiguredComposition):
            make_line().set_parameters([1.0])

    def test_names(self):
        f = make_line()
        assert f.parameter_index("slope") == 1
        with pytest.raises(KeyError):
            f.parameter_index("curvature")

    def test_default_names(self):
        f = EvaluableFunction("f", lambda x, p: x, 0, 1, 3)
        assert f.param_names == ["p0", "p1", "p2"]

    def test_name_count_mismatch(self):
        with pytest.raises(MisconfiguredComposition):
            EvaluableFunction("f", lambda x, p: x, 0, 1, 2, param_names=["a"])

    def test_fix_and_release(self):
        f = make_line()
        f.fix_parameter(1, 0.25)
        assert f.fixed[1]
        assert f.get_parameter(1) == 0.25
        f.release_parameter(1)
        assert not f.fixed[1]

    def test_inverted_limits_are_swapped(self):
        f = make_line()
        f.set_parameter_limits(0, 5.0, -5.0)
        assert f.limits[0] == (-5.0, 5.0)


class TestCosmetics:
    """Range, style copying and drawing."""

    def test_copy_style_from(self):
        a, b = make_line(), make_line()
        a.line_color, a.line_style = "blue", ":"
        b.copy_style_from(a)
        assert (b.line_color, b.line_style) == ("blue", ":")

    def test_sample_constant_function(self):
        f = EvaluableFunction("const", lambda x, p: p[0], 0.0, 1.0, 1)
        f.set_parameter(0, 3.0)
        x, y = f.sample(11)
        assert x.shape == y.shape == (11,)
        assert np.all(y == 3.0)

    def test_sample_custom_range(self):
        x, _ = make_line().sample(5, x_range=(2.0, 4.0))
        np.testing.assert_allclose(x, [2.0, 2.5, 3.0, 3.5, 4.0])

    def test_draw_adds_line(self):
        fig, ax = plt.subplots()
        f = make_line()
        f.line_color = "blue"
        line = f.draw(ax, n_points=50)
        assert len(ax.lines) == 1
        assert line.get_color() == "blue"
        np.testing.assert_allclose(line.get_xdata()[[0, -1]], [0.0, 10.0])
        plt.close(fig)


if __name__ == "__main__":
    pytest.main([__file__, "-v", "-s"])
