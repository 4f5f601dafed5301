"""
Script deriving historic efficiencies of final (FE) to useful energy (UE)
conversion for all combinations of energy carriers and end-uses

The efficiencies are projected with an asymptotic regression model driven by
GDP per capita, an S-shaped approach towards an assumed efficiency level
(De Stercke, S. (2014). Dynamics of Energy Systems: A Useful Perspective.
IIASA Interim Report IR-14-013). Region specific correction factors match the
projections to observed efficiencies.


Copyright (C) 2025 Leonhard Hofbauer, licensed under a MIT license
"""

import logging

import numpy as np
import pandas as pd
from scipy.optimize import curve_fit

from edge_buildings import utils

logger = logging.getLogger(__name__)

KEYS = ["region", "period", "carrier", "enduse"]
PARS = ["Asym", "R0", "lrc"]


def ssasymp(x, asym, r0, lrc):
    """ Asymptotic regression model

    Starts at `r0` for x=0 and approaches `asym` with a rate of exp(`lrc`).
    """
    return asym + (r0 - asym) * np.exp(-np.exp(lrc) * x)


def efficiency_data(pfu, gdppop):
    """ Calculate observed efficiencies and add GDP per capita


    Parameters
    ----------
    pfu : DataFrame
        Data with columns 'region', 'period', 'carrier', 'enduse', 'unit'
        ('fe' or 'ue'), and 'value'.
    gdppop : DataFrame
        GDP per capita with columns 'region', 'period', and 'value'.

    Returns
    -------
    eff : DataFrame
        Dataframe with columns 'region', 'period', 'carrier', 'enduse', 'fe',
        'ue', 'efficiency', and 'gdppop'.

    """

    eff = pfu.set_index(KEYS + ["unit"])["value"].unstack("unit")
    eff = eff.reindex(columns=["fe", "ue"]).reset_index()
    eff.columns.name = None
    eff["efficiency"] = eff["ue"] / eff["fe"]

    gdppop = gdppop[["region", "period", "value"]].rename(
        columns={"value": "gdppop"})
    eff = eff.merge(gdppop, on=["region", "period"], how="left")

    return eff


def fit_efficiency_regression(data):
    """ Fit asymptotic regression of efficiencies on GDP per capita


    Parameters
    ----------
    data : DataFrame
        Dataframe with columns 'carrier', 'enduse', 'gdppop', and
        'efficiency', e.g., as returned by `efficiency_data`.

    Returns
    -------
    pars : DataFrame
        Regression parameters with columns 'carrier', 'enduse', 'Asym', 'R0',
        and 'lrc'. Combinations with too few observations or without
        converging fit are not included.

    """

    pars = list()
    for (carrier, enduse), g in data.groupby(["carrier", "enduse"]):
        g = g[np.isfinite(g["efficiency"]) & np.isfinite(g["gdppop"])
              & (g["gdppop"] > 0)]
        if len(g) < 3:
            logger.warning(f"Too few observations for {enduse}.{carrier},"
                           " no regression parameters derived.")
            continue

        x = g["gdppop"].to_numpy(dtype=float)
        y = g["efficiency"].to_numpy(dtype=float)
        p0 = [y.max(), y.min(), np.log(1 / np.median(x))]
        try:
            popt, _ = curve_fit(ssasymp, x, y, p0=p0, maxfev=10000)
        except RuntimeError:
            logger.warning(f"Regression for {enduse}.{carrier} did not"
                           " converge, no regression parameters derived.")
            continue
        pars.append([carrier, enduse] + list(popt))

    return pd.DataFrame(pars, columns=["carrier", "enduse"] + PARS)


def correct_parameters(reg_pars, pars_corr=None):
    """ Override regression parameters with corrected ones


    Parameters
    ----------
    reg_pars : DataFrame
        Regression parameters ('carrier', 'enduse', 'Asym', 'R0', 'lrc').
    pars_corr : DataFrame, optional
        Corrected parameters in the same format. Missing values keep the
        original parameter. The default is None.

    Returns
    -------
    reg_pars : DataFrame
        Corrected regression parameters.
    corrected : list of tuple
        (enduse, carrier) combinations that have been corrected.

    """

    reg_pars = reg_pars[["carrier", "enduse"] + PARS]
    if pars_corr is None or pars_corr.empty:
        return reg_pars, []

    pars_corr = pars_corr[["carrier", "enduse"] + PARS]
    reg_pars = reg_pars.merge(pars_corr, on=["carrier", "enduse"],
                              how="left", suffixes=("", "Corr"))
    for p in PARS:
        reg_pars[p] = reg_pars[p + "Corr"].where(reg_pars[p + "Corr"].notna(),
                                                 reg_pars[p])
    reg_pars = reg_pars.drop([p + "Corr" for p in PARS], axis=1)

    corrected = list(pars_corr[["enduse", "carrier"]]
                     .itertuples(index=False, name=None))

    return reg_pars, corrected


def equalise_gas_bio(efficiencies, pairs):
    """ Set efficiencies of one carrier to those of another carrier


    Parameters
    ----------
    efficiencies : DataFrame
        Efficiencies with columns 'region', 'period', 'enduse', 'carrier',
        and 'value'.
    pairs : dict
        Mapping of end-uses to [from carrier, to carrier], e.g.,
        {"cooking": ["natgas", "biomod"]}.

    Returns
    -------
    efficiencies : DataFrame
        Efficiencies with replaced values.

    """

    for enduse, (cfrom, cto) in pairs.items():
        eq = efficiencies[(efficiencies["enduse"] == enduse)
                          & (efficiencies["carrier"] == cfrom)].copy()
        eq["carrier"] = cto
        rep = efficiencies.merge(eq[KEYS], on=KEYS, how="left",
                                 indicator=True)["_merge"] == "both"
        efficiencies = pd.concat([efficiencies[~rep.values], eq],
                                 ignore_index=True)

    return efficiencies


def calc_fe_ue_efficiencies(pfu, gdppop, reg_pars, pars_corr=None,
                            gas_bio_equality=None, periods=None):
    """ Calculate historic FE to UE efficiencies


    Parameters
    ----------
    pfu : DataFrame
        FE and UE data with columns 'region', 'period', 'carrier', 'enduse',
        'unit' ('fe' or 'ue'), and 'value'.
    gdppop : DataFrame
        GDP per capita with columns 'region', 'period', and 'value'.
    reg_pars : DataFrame
        Regression parameters ('carrier', 'enduse', 'Asym', 'R0', 'lrc').
    pars_corr : DataFrame, optional
        Corrected regression parameters. For these combinations the projected
        efficiency is always used. The default is None.
    gas_bio_equality : bool, optional
        If modern biomass shares the natural gas efficiencies. The default is
        taken from the config.
    periods : list of int, optional
        Periods of the result. The default is taken from the config.

    Returns
    -------
    efficiencies : DataFrame
        Efficiencies with columns 'region', 'period', 'enduse', 'carrier',
        and 'value'.
    weights : DataFrame
        Total final energy per region and period ('region', 'period',
        'value') of the included carrier/end-use combinations.

    """

    cfg = utils.config["efficiencies"]
    if periods is None:
        periods = list(range(cfg["period_start"], cfg["period_end"] + 1))
    if gas_bio_equality is None:
        gas_bio_equality = cfg["gas_bio_equality"]

    pfu = pfu[KEYS + ["unit", "value"]]

    # combine with GDP per capita
    data = utils.interpolate_missing_periods(pfu, periods)
    data["value"] = data["value"].fillna(0)
    data = efficiency_data(data, gdppop)

    # assign (corrected) parameters to carrier/end-use combinations
    reg_pars, corrected = correct_parameters(reg_pars, pars_corr)
    data = data.merge(reg_pars, on=["carrier", "enduse"], how="inner")
    data = data.dropna(subset=["gdppop"] + PARS)
    logger.info(f"Projecting efficiencies for {len(reg_pars)}"
                " carrier/end-use combinations.")

    # predict historic efficiencies with non-linear model
    data["pred"] = ssasymp(data["gdppop"], data["Asym"], data["R0"],
                           data["lrc"])

    # create correction factor to match projections with observations, where
    # observations are missing the factors are interpolated
    data["factor"] = data["efficiency"] / data["pred"]
    inf = data.loc[np.isinf(data["factor"]), KEYS]
    factors = data[KEYS + ["factor"]].replace([np.inf, -np.inf], np.nan)
    factors = utils.interpolate_missing_periods(factors, periods,
                                                value_col="factor",
                                                expand_values=True)
    data = data.drop("factor", axis=1).merge(factors, on=KEYS, how="left")
    if not inf.empty:
        isinf = data.set_index(KEYS).index.isin(list(inf.itertuples(index=False,
                                                                    name=None)))
        data.loc[isinf, "factor"] = np.inf

    # NOTE: Regions without any observation for a carrier/end-use combination
    #       are filled with non-corrected efficiency projections.
    data["value"] = np.where(data["factor"].isna() | np.isinf(data["factor"]),
                             data["pred"],
                             np.where(data["efficiency"].isna(),
                                      data["pred"] * data["factor"],
                                      data["efficiency"]))
    corrected = set(corrected)
    iscorr = np.array([(e, c) in corrected for e, c
                       in zip(data["enduse"], data["carrier"])], dtype=bool)
    data.loc[iscorr, "value"] = data.loc[iscorr, "pred"]

    efficiencies = data[["region", "period", "enduse", "carrier", "value"]]

    if gas_bio_equality:
        efficiencies = equalise_gas_bio(efficiencies, cfg["gas_bio_pairs"])

    # FE weights
    fe = utils.interpolate_missing_periods(pfu, periods, expand_values=True)
    fe = fe[fe["unit"] == "fe"]
    fe = fe.merge(efficiencies[KEYS].drop_duplicates(), on=KEYS, how="inner")
    weights = fe.groupby(["region", "period"])["value"].sum().reset_index()
    weights["value"] = weights["value"].fillna(0)

    return efficiencies.reset_index(drop=True), weights


if __name__ == "__main__":

    if "snakemake" not in globals():
        snakemake = utils.mock_snakemake("calc_fe_ue_efficiencies")
    utils.adjust_logger()

    logger.info("Loading FE/UE data, GDP per capita and corrections.")
    pfu = pd.read_csv(snakemake.input.path_pfu)
    gdppop = pd.read_csv(snakemake.input.path_gdppop)
    pars_corr = pd.read_csv(snakemake.input.path_correct_eff)

    logger.info("Fitting efficiency regression.")
    reg_pars = fit_efficiency_regression(efficiency_data(pfu, gdppop))
    reg_pars.to_csv(snakemake.output.path_reg_pars, index=False)

    efficiencies, weights = calc_fe_ue_efficiencies(
        pfu, gdppop, reg_pars, pars_corr=pars_corr,
        gas_bio_equality=snakemake.params.gas_bio_equality)

    # save to file
    # unit: -
    logger.info("Saving files.")
    efficiencies.to_csv(snakemake.output.path_efficiencies, index=False)
    # unit: EJ
    weights.to_csv(snakemake.output.path_weights, index=False)
    logger.info("Saved files.")
