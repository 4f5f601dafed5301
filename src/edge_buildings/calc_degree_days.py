"""
Script deriving heating and cooling degree days (HDD/CDD) for combinations of
ambient and limit temperatures

Both the daily ambient temperature and the limit temperature at which heating
or cooling is switched on are assumed to vary around their nominal values
following independent normal distributions. The expected degree days are
calculated either in closed form (the difference of two normal distributions
is normal) or by a double sum over both distributions truncated at a given
number of standard deviations.


Copyright (C) 2025 Leonhard Hofbauer, licensed under a MIT license
"""

import logging

import numpy as np
import pandas as pd
from scipy.stats import norm

from edge_buildings import utils

logger = logging.getLogger(__name__)

KINDS = ["HDD", "CDD"]


class InvalidRangeError(ValueError):
    """Raised if the bounds of the ambient temperature grid are invalid."""


class InvalidParameterError(ValueError):
    """Raised if a distribution parameter is invalid."""


def _decimals(x):
    # number of decimals of the shortest representation of x
    return len(np.format_float_positional(float(x), trim="-").partition(".")[2])


def temperature_grid(tlow, tup, resolution=0.1):
    """ Create grid of ambient temperatures

    The grid starts at `tlow` and includes all points below `tup`.


    Parameters
    ----------
    tlow : float
        Lower bound of the grid (included).
    tup : float
        Upper bound of the grid (excluded).
    resolution : float, optional
        Step size of the grid. The default is 0.1.

    Returns
    -------
    grid : ndarray
        Ambient temperatures, rounded to the decimals of `tlow` and
        `resolution`.

    """
    decimals = max(_decimals(tlow), _decimals(resolution))
    # rounding guards against floating point noise in the number of steps
    n = int(np.ceil(round((tup - tlow) / resolution, 9)))

    return np.round(tlow + resolution * np.arange(n), decimals)


def _nodes(std, n_sigma, n_nodes):
    # discretized normal distribution around zero, truncated at n_sigma
    if std == 0:
        return np.array([0.0]), np.array([1.0])
    z = np.linspace(-n_sigma, n_sigma, n_nodes)
    w = norm.pdf(z)

    return std * z, w / w.sum()


def _ramp_closed(mu, sigma):
    if sigma == 0:
        return np.maximum(0, mu)
    z = mu / sigma

    return np.maximum(0, sigma * norm.pdf(z) + mu * norm.cdf(z))


def _ramp_integral(mu, tamb_std, tlim_std, n_sigma, n_nodes):
    x, wx = _nodes(tamb_std, n_sigma, n_nodes)
    y, wy = _nodes(tlim_std, n_sigma, n_nodes)

    # deviation of the limit/ambient difference from its mean and the
    # respective joint weights
    d = (y[np.newaxis, :] - x[:, np.newaxis]).ravel()
    w = (wx[:, np.newaxis] * wy[np.newaxis, :]).ravel()

    # only evaluate unique differences, in chunks to limit memory use
    mu_u, inv = np.unique(mu, return_inverse=True)
    res = np.empty(len(mu_u))
    chunk = max(1, 2 * 10**6 // len(d))
    for i in range(0, len(mu_u), chunk):
        ramp = np.maximum(0, mu_u[i:i+chunk, np.newaxis] + d[np.newaxis, :])
        res[i:i+chunk] = ramp @ w

    return res[inv.ravel()].reshape(mu.shape)


def degree_days(tamb, tlim, kind, tamb_std=5, tlim_std=5, method="closed",
                n_sigma=3, n_nodes=121):
    """ Calculate expected degree days


    Parameters
    ----------
    tamb : array_like
        Mean ambient temperatures.
    tlim : array_like
        Mean limit temperatures, broadcastable against `tamb`.
    kind : str
        Either 'HDD' or 'CDD'.
    tamb_std : float, optional
        Standard deviation of the ambient temperature. The default is 5.
    tlim_std : float, optional
        Standard deviation of the limit temperature. The default is 5.
    method : str, optional
        'closed' for the closed form expectation or 'integral' for the
        truncated double sum. The default is 'closed'.
    n_sigma : float, optional
        Truncation of the distributions in standard deviations, only used for
        the 'integral' method. The default is 3.
    n_nodes : int, optional
        Number of nodes per distribution, only used for the 'integral'
        method. The default is 121.

    Returns
    -------
    dd : ndarray
        Expected degree days.

    """

    tamb = np.asarray(tamb, dtype=float)
    tlim = np.asarray(tlim, dtype=float)

    if kind == "HDD":
        mu = tlim - tamb
    elif kind == "CDD":
        mu = tamb - tlim
    else:
        raise NotImplementedError(
                f"'{kind}' is currently not a valid degree day kind."
                " Valid options are 'HDD' or 'CDD'."
            )

    if method == "closed":
        return _ramp_closed(mu, np.sqrt(tamb_std**2 + tlim_std**2))
    elif method == "integral":
        return _ramp_integral(np.atleast_1d(mu), tamb_std, tlim_std,
                              n_sigma, n_nodes).reshape(mu.shape)
    else:
        raise NotImplementedError(
                f"'{method}' is currently not a valid calculation method."
                " Valid options are 'closed' or 'integral'."
            )


def calc_hdd_cdd(tlow, tup, tlim, tamb_std=5, tlim_std=5, method="closed",
                 resolution=0.1, n_sigma=3, n_nodes=121):
    """ Calculate HDD and CDD for a grid of ambient and limit temperatures


    Parameters
    ----------
    tlow : float
        Lower bound of ambient temperatures.
    tup : float
        Upper bound of ambient temperatures (excluded).
    tlim : dict
        Dictionary with keys 'HDD' and 'CDD' each mapping to a list of limit
        temperatures. An empty list gives no rows for the respective kind.
    tamb_std : float, optional
        Standard deviation of the ambient temperature. The default is 5.
    tlim_std : float, optional
        Standard deviation of the limit temperature. The default is 5.
    method : str, optional
        Calculation method, see `degree_days`. The default is 'closed'.
    resolution : float, optional
        Resolution of the ambient temperature grid. The default is 0.1.
    n_sigma : float, optional
        Truncation in standard deviations ('integral' method only).
        The default is 3.
    n_nodes : int, optional
        Nodes per distribution ('integral' method only). The default is 121.

    Returns
    -------
    hddcdd : DataFrame
        Dataframe with columns 'tamb', 'tlim', 'variable', and 'value', one
        row per ambient temperature, limit temperature and kind.

    """

    if not (np.isfinite(tlow) and np.isfinite(tup)) or tlow >= tup:
        raise InvalidRangeError(
                f"Invalid ambient temperature range [{tlow}, {tup})."
                " The lower bound has to be smaller than the upper bound."
            )
    for name, std in [("tamb_std", tamb_std), ("tlim_std", tlim_std)]:
        if not std >= 0:
            raise InvalidParameterError(
                    f"'{name}' has to be non-negative, got {std}."
                )
    missing = [k for k in KINDS if k not in tlim]
    if missing:
        raise InvalidParameterError(
                "Limit temperatures missing for " + ", ".join(missing) + "."
            )
    unknown = [k for k in tlim if k not in KINDS]
    if unknown:
        raise NotImplementedError(
                "'" + "', '".join(map(str, unknown)) + "' is currently not a"
                " valid degree day kind. Valid options are 'HDD' or 'CDD'."
            )
    if method not in ["closed", "integral"]:
        raise NotImplementedError(
                f"'{method}' is currently not a valid calculation method."
                " Valid options are 'closed' or 'integral'."
            )

    grid = temperature_grid(tlow, tup, resolution)
    logger.info(f"Calculating degree days for {len(grid)} ambient"
                f" temperatures between {tlow} and {tup}.")

    hddcdd = list()
    for kind in KINDS:
        limits = np.asarray(tlim[kind], dtype=float)
        if limits.size == 0:
            continue
        tamb, tl = np.meshgrid(grid, limits, indexing="ij")
        tamb = tamb.ravel()
        tl = tl.ravel()
        hddcdd.append(pd.DataFrame({"tamb": tamb,
                                    "tlim": tl,
                                    "variable": kind,
                                    "value": degree_days(tamb, tl, kind,
                                                         tamb_std=tamb_std,
                                                         tlim_std=tlim_std,
                                                         method=method,
                                                         n_sigma=n_sigma,
                                                         n_nodes=n_nodes)}))

    if not hddcdd:
        return pd.DataFrame({"tamb": pd.Series(dtype=float),
                             "tlim": pd.Series(dtype=float),
                             "variable": pd.Series(dtype=object),
                             "value": pd.Series(dtype=float)})

    return pd.concat(hddcdd, ignore_index=True)


if __name__ == "__main__":

    if "snakemake" not in globals():
        snakemake = utils.mock_snakemake("calc_degree_days")
    utils.adjust_logger()

    dd = snakemake.params.dic

    hddcdd = calc_hdd_cdd(tlow=dd["tlow"],
                          tup=dd["tup"],
                          tlim=dd["tlim"],
                          tamb_std=dd["tamb_std"],
                          tlim_std=dd["tlim_std"],
                          resolution=dd["resolution"],
                          n_sigma=dd["n_sigma"],
                          n_nodes=dd["n_nodes"])

    # save to file
    # unit: K·d/d
    logger.info("Saving file.")
    hddcdd.to_csv(snakemake.output.path_hddcdd, index=False)
    logger.info("Saved file.")
