"""
Script deriving final and useful energy by carrier and end-use from the
Primary, Final and Useful energy data base (PFUDB)

Low temperature heat is disaggregated into thermal end-uses using existing
end-use/carrier shares where available and regional end-use shares otherwise.


Copyright (C) 2025 Leonhard Hofbauer, licensed under a MIT license
"""

import logging

import pandas as pd

from edge_buildings import utils

logger = logging.getLogger(__name__)

COLS = ["region", "period", "unit", "carrier", "enduse", "value"]


def to_mapping(mapping, from_col="PFUDB", to_col="EDGE"):
    """ Convert a two column mapping table to a dictionary """
    if isinstance(mapping, pd.DataFrame):
        return mapping.set_index(from_col)[to_col].to_dict()
    return dict(mapping)


def prepare_replace_shares(shares_replace, exclude=None):
    """ Normalise existing end-use/carrier shares


    Parameters
    ----------
    shares_replace : DataFrame
        Shares with columns 'region', 'period', 'carrier', 'enduse', and
        'value'.
    exclude : DataFrame, optional
        End-use/carrier combinations ('enduse', 'carrier') that are set to
        zero. The default is None.

    Returns
    -------
    shares : DataFrame
        Shares of each end-use in the respective carrier for all regions that
        have any share data.
    regions : list of str
        Regions with share data.

    """

    regions = (shares_replace.loc[shares_replace["value"].notna(), "region"]
               .unique().tolist())

    shares = shares_replace[shares_replace["region"].isin(regions)].copy()
    shares["value"] = shares["value"].fillna(0)
    shares = utils.proportions(shares, ["region", "period", "carrier"])

    # exclude specific carrier/enduse combinations
    if exclude is not None:
        excl = shares.merge(exclude[["enduse", "carrier"]].drop_duplicates(),
                            on=["enduse", "carrier"], how="left",
                            indicator=True)["_merge"] == "both"
        shares.loc[excl.values, "value"] = 0

    return shares, regions


def disaggregation_shares(enduse_shares, carriers, exclude=None,
                          region_mapping=None):
    """ Derive end-use shares per carrier from regional end-use shares


    Parameters
    ----------
    enduse_shares : DataFrame
        Shares with columns 'region', 'period', 'enduse', and 'value'.
    carriers : list of str
        Carriers the shares are derived for.
    exclude : DataFrame, optional
        End-use/carrier combinations ('enduse', 'carrier') that are not
        allowed. The default is None.
    region_mapping : DataFrame, optional
        Mapping of regions ('region') to aggregated regions ('regionAgg').
        Regions without end-use shares use the average shares of their
        aggregated region. The default is None.

    Returns
    -------
    shares : DataFrame
        Shares with columns 'region', 'period', 'carrier', 'enduse', and
        'value', normalised per region, period, and carrier.

    """

    shares = enduse_shares[["region", "period", "enduse", "value"]]

    if region_mapping is not None:
        rm = region_mapping[["region", "regionAgg"]].drop_duplicates()
        agg = (shares.merge(rm, on="region")
               .groupby(["regionAgg", "period", "enduse"])["value"].mean()
               .reset_index())
        fill = rm[~rm["region"].isin(shares["region"])]
        fill = fill.merge(agg, on="regionAgg").drop("regionAgg", axis=1)
        if not fill.empty:
            logger.info("Using aggregated region shares for "
                        + str(fill["region"].nunique()) + " region(s).")
        shares = pd.concat([shares, fill[shares.columns]], ignore_index=True)

    shares = shares.merge(pd.DataFrame({"carrier": carriers}), how="cross")

    if exclude is not None:
        shares = shares.merge(exclude[["enduse", "carrier"]].drop_duplicates(),
                              on=["enduse", "carrier"], how="left",
                              indicator=True)
        shares = shares[shares["_merge"] == "left_only"].drop("_merge", axis=1)

    shares = utils.proportions(shares, ["region", "period", "carrier"])

    return shares[["region", "period", "carrier", "enduse", "value"]]


def calc_pfudb(pfu, carrier_map, enduse_map, enduse_shares,
               shares_replace=None, exclude=None, region_mapping=None,
               period_begin=None):
    """ Disaggregate PFUDB data into carriers and end-uses


    Parameters
    ----------
    pfu : DataFrame
        PFUDB data with columns 'region', 'period', 'unit' ('fe' or 'ue'),
        'carrier', 'enduse', and 'value'.
    carrier_map : dict or DataFrame
        Mapping of PFUDB carrier names to model carrier names.
    enduse_map : dict or DataFrame
        Mapping of non-thermal PFUDB end-uses to model end-uses.
    enduse_shares : DataFrame
        Regional thermal end-use shares ('region', 'period', 'enduse',
        'value').
    shares_replace : DataFrame, optional
        Existing end-use/carrier shares ('region', 'period', 'carrier',
        'enduse', 'value') used instead of the regional end-use shares.
        The default is None.
    exclude : DataFrame, optional
        End-use/carrier combinations ('enduse', 'carrier') that are
        systematically excluded. The default is None.
    region_mapping : DataFrame, optional
        Mapping of regions to aggregated regions, see
        `disaggregation_shares`. The default is None.
    period_begin : int, optional
        First period included in the result. The default is taken from the
        config.

    Returns
    -------
    pfu : DataFrame
        Dataframe with columns 'region', 'period', 'unit', 'carrier',
        'enduse', and 'value'.

    """

    cfg = utils.config["pfudb"]
    if period_begin is None:
        period_begin = cfg["period_begin"]
    therm = cfg["thermal_enduse"]

    # generalise heat carriers, map carrier names
    pfu = utils.sum_items(pfu[COLS], cfg["heat_carriers"], cfg["heat_name"],
                          "carrier")
    pfu["carrier"] = pfu["carrier"].replace(to_mapping(carrier_map))
    pfu["value"] = pfu["value"].fillna(0)
    pfu = pfu[pfu["period"].isin(enduse_shares["period"].unique())]

    # non-thermal part, aggregated to model end-uses
    pfu_nontherm = pfu[pfu["enduse"] != therm].copy()
    em = to_mapping(enduse_map)
    unmapped = sorted(set(pfu_nontherm["enduse"]) - set(em))
    if unmapped:
        logger.warning("No end-use mapping for " + ", ".join(unmapped)
                       + ", these are dropped.")
    pfu_nontherm["enduse"] = pfu_nontherm["enduse"].map(em)
    pfu_nontherm = (pfu_nontherm.dropna(subset=["enduse"])
                    .groupby(COLS[:-1])["value"].sum().reset_index())

    pfu_therm = pfu[pfu["enduse"] == therm].drop("enduse", axis=1)

    res = [pfu_nontherm]

    # thermal part for regions with existing end-use/carrier shares
    replace_regs = []
    if shares_replace is not None:
        shares_rep, replace_regs = prepare_replace_shares(shares_replace,
                                                          exclude)
        logger.info(f"Disaggregating thermal demand of {len(replace_regs)}"
                    " region(s) with existing shares.")

        pfu_therm_rep = pfu_therm[pfu_therm["region"].isin(replace_regs)]
        pfu_therm_rep = pfu_therm_rep.merge(
            shares_rep.rename(columns={"value": "share"}),
            on=["region", "period", "carrier"], how="left")
        pfu_therm_rep["value"] = (pfu_therm_rep["value"]
                                  * pfu_therm_rep["share"]).fillna(0)
        res.append(pfu_therm_rep.dropna(subset=["enduse"])[COLS])

    # thermal part for remaining regions, first final energy ...
    pfu_therm = pfu_therm[~pfu_therm["region"].isin(replace_regs)]
    fe = pfu_therm[pfu_therm["unit"] == "fe"]
    shares = disaggregation_shares(enduse_shares,
                                   fe["carrier"].unique().tolist(),
                                   exclude=exclude,
                                   region_mapping=region_mapping)
    fe = fe.merge(shares.rename(columns={"value": "share"}),
                  on=["region", "period", "carrier"], how="left")
    fe["value"] = fe["value"] * fe["share"]
    lost = fe.loc[fe["value"].isna() & fe["share"].isna()]
    if not lost.empty:
        logger.warning("No end-use shares for "
                       + str(len(lost[["region", "carrier"]].drop_duplicates()))
                       + " region/carrier combination(s), these are dropped.")
    fe = fe.dropna(subset=["value"])[COLS]

    # ... then useful energy using the carrier specific end-use distribution
    # of final energy
    ue_shares = utils.proportions(fe, ["region", "period", "carrier"])
    ue_shares = ue_shares.rename(columns={"value": "share"}).drop("unit",
                                                                  axis=1)
    ue = pfu_therm[pfu_therm["unit"] == "ue"].merge(
        ue_shares, on=["region", "period", "carrier"], how="inner")
    ue["value"] = ue["value"] * ue["share"]
    ue = ue[COLS]

    pfu = pd.concat([ue, fe] + res, ignore_index=True)

    # select data above lower history boundary
    pfu = pfu[pfu["period"] >= period_begin]

    return pfu.reset_index(drop=True)


if __name__ == "__main__":

    if "snakemake" not in globals():
        snakemake = utils.mock_snakemake("calc_pfudb")
    utils.adjust_logger()

    logger.info("Loading PFUDB data, shares and mappings.")
    pfu = pd.read_csv(snakemake.input.path_pfudb)
    carrier_map = pd.read_csv(snakemake.input.path_map_carrier)
    enduse_map = pd.read_csv(snakemake.input.path_map_enduse)
    exclude = pd.read_csv(snakemake.input.path_exclude)
    enduse_shares = pd.read_csv(snakemake.input.path_shares_enduse)
    shares_replace = pd.read_csv(snakemake.input.path_shares_replace)
    region_mapping = pd.read_csv(snakemake.input.path_region_mapping)

    pfu = calc_pfudb(pfu, carrier_map, enduse_map, enduse_shares,
                     shares_replace=shares_replace,
                     exclude=exclude,
                     region_mapping=region_mapping)

    # save to file
    # unit: EJ
    logger.info("Saving file.")
    pfu.to_csv(snakemake.output.path_pfu, index=False)
    logger.info("Saved file.")
