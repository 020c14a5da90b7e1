import numpy as np


def binary_logloss(y_true, p, eps=1e-15):
    p = np.clip(np.asarray(p, dtype=np.float64), eps, 1 - eps)
    y_true = np.asarray(y_true, dtype=np.float64)

    return -np.mean(y_true * np.log(p) + (1 - y_true) * np.log(1 - p))


def one_vs_rest_logloss(targets, probs):
    """Mean of the per-label binary log losses.

    `targets` and `probs` have shape (nrows, nlabels).
    """

    targets = np.asarray(targets)
    probs = np.asarray(probs)

    losses = [binary_logloss(targets[:, k], probs[:, k]) for k in range(probs.shape[1])]
    return float(np.mean(losses))
