import numpy as np
import polars as pl
from polars.testing import assert_frame_equal
import pytest

from hashftrl import ConfigurationError, Ftrl, ShapeError, StateError, TypeMismatchError
from hashftrl.modeling.models import create


def test_boolean_scenario(bool_frames, small_model):
    X, y = bool_frames
    small_model.fit(X, y)

    assert small_model.is_trained()
    preds = small_model.predict(X)
    assert preds.shape == (4, 1)
    assert preds.columns == ["target"]
    assert preds.dtypes == [pl.Float64]
    p = preds["target"].to_numpy()
    assert ((p > 0) & (p < 1)).all()


def test_first_update_matches_ftrl_rule():
    # one row, one column: w starts at 0 so p = 0.5 and g = -0.5
    X = pl.DataFrame({"a": ["x"]})
    y = pl.DataFrame({"target": [True]})
    model = Ftrl(alpha=0.1, beta=1.0, lambda1=0.0, lambda2=0.0, nbins=8,
                 double_precision=True, nthreads=1).fit(X, y)

    weights = model.model
    active = int(np.flatnonzero(weights["n_0"].to_numpy())[0])
    assert weights["n_0"][active] == pytest.approx(0.25)
    # sigma = sqrt(0.25) / alpha = 5, but w was 0, so z += g
    assert weights["z_0"][active] == pytest.approx(-0.5)

    # w = -z / ((beta + sqrt(n)) / alpha) = 0.5 / 15
    expected = 1 / (1 + np.exp(-0.5 / 15))
    assert model.predict(X)["target"][0] == pytest.approx(expected)


def test_l1_keeps_small_weights_at_zero():
    X = pl.DataFrame({"a": ["x"]})
    y = pl.DataFrame({"target": [True]})
    model = Ftrl(lambda1=10.0, nbins=8, double_precision=True, nthreads=1).fit(X, y)
    assert model.predict(X)["target"][0] == pytest.approx(0.5)


def test_predictions_are_probabilities(mixed_frames):
    X, y = mixed_frames
    model = Ftrl(alpha=0.5, nbins=256, nepochs=3, interactions=True, nthreads=1).fit(X, y)
    p = model.predict(X)["target"].to_numpy()
    assert ((p >= 0) & (p <= 1)).all()


def test_learns_signal(mixed_frames):
    X, y = mixed_frames
    model = Ftrl(alpha=0.5, nbins=1 << 20, nepochs=5, nthreads=1).fit(X, y)
    p = model.predict(X)["target"].to_numpy()
    is_red = y["target"].to_numpy()
    assert p[is_red].mean() > 0.6
    assert p[~is_red].mean() < 0.4


def test_single_thread_training_is_deterministic(mixed_frames):
    X, y = mixed_frames
    first = Ftrl(nbins=128, nepochs=2, nthreads=1).fit(X, y)
    second = Ftrl(nbins=128, nepochs=2, nthreads=1).fit(X, y)
    assert_frame_equal(first.model, second.model)
    assert_frame_equal(first.predict(X), second.predict(X))


def test_multithreaded_training(mixed_frames):
    X, y = mixed_frames
    model = Ftrl(alpha=0.5, nbins=64, nepochs=3, interactions=True, nthreads=4).fit(X, y)

    weights = model.model
    for k in range(weights.width // 2):
        n = weights[f"n_{k}"].to_numpy()
        assert (n >= 0).all()
        assert np.isfinite(weights[f"z_{k}"].to_numpy()).all()

    p = model.predict(X)["target"].to_numpy()
    assert ((p >= 0) & (p <= 1)).all()


def test_threaded_prediction_matches_single_thread(mixed_frames):
    X, y = mixed_frames
    model = Ftrl(nbins=128, nepochs=2, nthreads=1).fit(X, y)
    single = model.predict(X)
    model.nthreads = 3
    assert_frame_equal(model.predict(X), single)


def test_single_precision(bool_frames):
    X, y = bool_frames
    model = Ftrl(nbins=16, double_precision=False, nthreads=1).fit(X, y)
    assert model.model.dtypes == [pl.Float32, pl.Float32]
    assert model.predict(X).dtypes == [pl.Float32]
    assert model.feature_importances["feature_importance"].dtype == pl.Float32


def test_predict_before_fit_fails(bool_frames):
    X, _ = bool_frames
    with pytest.raises(StateError):
        Ftrl(nbins=4).predict(X)


def test_predict_column_count_mismatch(bool_frames, small_model):
    X, y = bool_frames
    small_model.fit(X, y)
    with pytest.raises(ShapeError, match="1 column"):
        small_model.predict(X.with_columns(pl.lit(1).alias("other")))


@pytest.mark.parametrize(
    "X, y",
    [
        (pl.DataFrame({"a": pl.Series([], dtype=pl.Boolean)}),
         pl.DataFrame({"t": pl.Series([], dtype=pl.Boolean)})),
        (pl.DataFrame(), pl.DataFrame({"t": [True]})),
        (pl.DataFrame({"a": [1, 2]}), pl.DataFrame({"t": [True]})),
        (pl.DataFrame({"a": [1]}), pl.DataFrame({"t": [True], "u": [False]})),
    ],
)
def test_fit_shape_errors_leave_model_untouched(X, y, small_model):
    with pytest.raises(ShapeError):
        small_model.fit(X, y)
    assert not small_model.is_trained()
    assert small_model.model is None
    assert small_model.reg_type.name == "NONE"


def test_non_boolean_binomial_target(small_model):
    X = pl.DataFrame({"a": [1, 2]})
    with pytest.raises(TypeMismatchError):
        small_model.fit(X, pl.DataFrame({"t": [1, 0]}))
    assert not small_model.is_trained()


def test_refit_continues_training(bool_frames, small_model):
    X, y = bool_frames
    small_model.fit(X, y)
    before = small_model.model["n_0"].sum()
    small_model.fit(X, y)
    assert small_model.model["n_0"].sum() > before

    with pytest.raises(ShapeError):
        small_model.fit(X.with_columns(pl.lit(1).alias("b")), y)


def test_missing_targets_are_skipped():
    X = pl.DataFrame({"a": ["x", "y", "z"]})
    y = pl.DataFrame({"t": [True, None, False]})
    model = Ftrl(nbins=1 << 16, double_precision=True, nthreads=1).fit(X, y)
    # only two rows contributed a squared gradient of 0.25 each
    assert model.model["n_0"].sum() == pytest.approx(0.5)


def test_zero_epochs_allocates_empty_model(bool_frames):
    X, y = bool_frames
    model = Ftrl(nbins=8, nepochs=0, nthreads=1).fit(X, y)
    assert model.is_trained()
    assert model.model["z_0"].sum() == 0
    assert (model.predict(X)["target"] == 0.5).all()


def test_reset(bool_frames, small_model):
    X, y = bool_frames
    small_model.fit(X, y)
    small_model.reset()
    assert not small_model.is_trained()
    assert small_model.reg_type.name == "NONE"
    assert small_model.nbins == 4
    with pytest.raises(StateError):
        small_model.predict(X)


def test_feature_importances(mixed_frames):
    X, y = mixed_frames
    model = Ftrl(alpha=0.5, nbins=1 << 20, nepochs=3, nthreads=1).fit(X, y)

    fi = model.feature_importances
    assert fi.columns == ["feature_name", "feature_importance"]
    assert fi["feature_name"].to_list() == X.columns
    values = fi["feature_importance"].to_numpy()
    assert (values >= 0).all()
    assert values.max() == pytest.approx(1.0)
    top = fi.sort("feature_importance", descending=True)["feature_name"][0]
    assert top == "color"


def test_interaction_importance_reaches_both_columns():
    X = pl.DataFrame({"a": ["x", "y"] * 10, "b": ["u", "v"] * 10})
    y = pl.DataFrame({"t": [True, False] * 10})
    model = Ftrl(alpha=0.5, nbins=1 << 12, interactions=True, nthreads=1).fit(X, y)
    values = model.feature_importances["feature_importance"].to_numpy()
    assert (values > 0).all()


def test_colname_hashes(bool_frames, small_model):
    X, y = bool_frames
    assert small_model.colname_hashes is None
    small_model.fit(X, y)
    hashes = small_model.colname_hashes
    assert len(hashes) == 1
    assert all(0 <= h < 2**64 for h in hashes)

    other = Ftrl(nbins=4, nthreads=1).fit(X, y)
    assert other.colname_hashes == hashes


def test_prediction_does_not_mutate(bool_frames, small_model):
    X, y = bool_frames
    small_model.fit(X, y)
    model_before = small_model.model
    fi_before = small_model.feature_importances
    small_model.predict(X)
    assert_frame_equal(small_model.model, model_before)
    assert_frame_equal(small_model.feature_importances, fi_before)


def test_multinomial_probabilities(multinomial_frames):
    X, y = multinomial_frames
    model = Ftrl(labels=["cat", "dog", "bird"], alpha=0.5, nbins=1 << 16,
                 nepochs=5, nthreads=1).fit(X, y)
    preds = model.predict(X)
    assert preds.columns == ["cat", "dog", "bird"]

    first = preds.row(0, named=True)
    # row 0 is a cat
    assert first["cat"] > first["dog"]
    assert first["cat"] > first["bird"]


def test_registry_creates_ftrl():
    model = create("ftrl", nbins=16)
    assert isinstance(model, Ftrl)
    assert model.nbins == 16


def test_registry_rejects_unknown_model():
    with pytest.raises(ConfigurationError, match="ftrl"):
        create("nope")
