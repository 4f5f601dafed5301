"""
Script reading and converting data from the Odyssee database

The Odyssee database contains detailed energy consumption by end-use and
their drivers as well as energy efficiency and CO2-related indicators for EU
countries, Norway, Serbia, Switzerland and the United Kingdom. To download new
data, log into the website, select all items of all levels and download the
data as 'column-orientated csv'.


Copyright (C) 2025 Leonhard Hofbauer, licensed under a MIT license
"""

import logging

import pandas as pd
import country_converter as coco

from edge_buildings import utils

logger = logging.getLogger(__name__)

cc = coco.CountryConverter()


def odyssee_files(subtype="households"):
    """ Get file names of the Odyssee exports for a database category


    Parameters
    ----------
    subtype : str, optional
        Database category, 'households' or 'services'.
        The default is 'households'.

    Returns
    -------
    files : list of str
        File names.

    """
    files = utils.config["odyssee"]["files"]
    if subtype not in files:
        raise ValueError(f"'{subtype}' is not a valid subtype. Valid options"
                         " are " + ", ".join(f"'{s}'" for s in files) + ".")
    return list(files[subtype])


def read_odyssee(files):
    """ Read Odyssee csv exports into a long format dataframe


    Parameters
    ----------
    files : list of str or str
        Path(s) of the column-orientated csv exports.

    Returns
    -------
    data : DataFrame
        Dataframe with columns 'region', 'period', 'variable', and 'value'.
        The variable is the item code with the unit appended ('item_unit').

    """

    if isinstance(files, str):
        files = [files]

    data = pd.concat([pd.read_csv(f,
                                  na_values=utils.config["odyssee"]["na_values"],
                                  keep_default_na=False)
                      for f in files], ignore_index=True)

    data = data[["ISO Code", "Year", "Item Code", "Value", "Unit"]].copy()
    data.columns = ["region", "period", "variable", "value", "unit"]

    data["value"] = pd.to_numeric(data["value"], errors="coerce")
    data = data.dropna(subset=["value"])

    # append unit to variable name where available
    data["variable"] = data["variable"].where(data["unit"].isna(),
                                              data["variable"] + "_"
                                              + data["unit"].astype(str))
    data = data.drop("unit", axis=1)
    data["period"] = data["period"].astype(int)

    logger.info(f"Read {len(data)} values from {len(files)} Odyssee file(s).")

    return data.reset_index(drop=True)


def split_unit(s):
    """ Split 'item_unit' variable names into item and unit """
    if s.empty:
        return s.copy(), pd.Series(index=s.index, dtype=object)
    parts = s.str.rsplit("_", n=1, expand=True)
    if parts.shape[1] == 1:
        parts[1] = None
    return parts[0], parts[1]


def convert_odyssee(data, regions=None):
    """ Rename regions, convert units and fill missing regions


    Parameters
    ----------
    data : DataFrame
        Dataframe as returned by `read_odyssee`.
    regions : list of str, optional
        ISO3 codes of all regions to be included in the result. Regions
        without data are filled with missing values. The default is None,
        i.e., all countries.

    Returns
    -------
    data : DataFrame
        Dataframe with columns 'region', 'period', 'variable', and 'value'.

    """

    cfg = utils.config["odyssee"]

    # filter problematic/unnecessary regions
    data = data[~data["region"].isin(cfg["drop_regions"])].copy()

    # rename regions: ISO2 -> ISO3
    iso2 = data["region"].replace(cfg["region_aliases"])
    codes = {c: cc.convert(names=c, src="ISO2", to="ISO3", not_found=None)
             for c in iso2.unique()}
    unmatched = [c for c, v in codes.items() if v == c]
    if unmatched:
        logger.warning("Could not convert region(s) " + ", ".join(unmatched)
                       + " to ISO3, these are dropped.")
    data["region"] = iso2.map(codes)
    data = data[~data["region"].isin(unmatched)]

    # unit conversion
    data["item"], data["unit"] = split_unit(data["variable"])
    data = utils.convert_units(data, cfg["unit_conversion"])
    data["variable"] = data["item"].where(data["unit"].isna(),
                                          data["item"] + "_"
                                          + data["unit"].astype(str))
    data = data[["region", "period", "variable", "value"]]

    # fill missing regions with NA
    if regions is None:
        regions = cc.data["ISO3"].dropna().unique().tolist()
    missing = sorted(set(regions) - set(data["region"]))
    if missing:
        logger.info(f"Filling {len(missing)} region(s) without data.")
    data = utils.complete_grid(data, ["region", "period", "variable"],
                               {"region": regions})

    return data


if __name__ == "__main__":

    if "snakemake" not in globals():
        snakemake = utils.mock_snakemake("read_odyssee", subtype="households")
    utils.adjust_logger()

    subtype = snakemake.wildcards.subtype
    files = list(snakemake.input.path_files)

    logger.info(f"Reading Odyssee data ({subtype}).")
    data = convert_odyssee(read_odyssee(files))

    # save to file
    logger.info("Saving file.")
    data.to_csv(snakemake.output.path_odyssee, index=False)
    logger.info("Saved file.")
