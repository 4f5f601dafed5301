"""
Module with utility functions


Copyright (C) 2025 Leonhard Hofbauer, licensed under a MIT license
includes code with Copyright 2017-2023 The PyPSA-Eur Authors
"""

import sys
import logging
from pathlib import Path

import yaml
import pandas as pd


logger = logging.getLogger(__name__)

# load config, in particular defaults and file paths
with open(Path(__file__).parent / "config.yaml", 'r') as file:
    config = yaml.safe_load(file)


def adjust_logger(level=None):
    root_logger = logging.getLogger()

    if level is None:
        level = config["logging"]["level"]

    # remove existing handlers
    if root_logger.hasHandlers():
        for h in list(root_logger.handlers):
            root_logger.removeHandler(h)

    console = logging.StreamHandler(stream=sys.stdout)
    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%m/%d/%Y %I:%M:%S %p",
    )
    console.setFormatter(formatter)
    root_logger.addHandler(console)
    root_logger.setLevel(level)


def sum_items(df, items, new_name, col, value_col="value"):
    """ Aggregate items of a column into a single new item


    Parameters
    ----------
    df : DataFrame
        Long format dataframe with a value column.
    items : list of str
        Items of column `col` to be summed up.
    new_name : str
        Name of the aggregated item.
    col : str
        Name of the column the items belong to, e.g., 'carrier'.
    value_col : str, optional
        Name of the value column. The default is 'value'.

    Returns
    -------
    df : DataFrame
        Dataframe where the items have been replaced by their sum.

    """

    sel = df[col].isin(items)
    others = [c for c in df.columns if c not in [col, value_col]]

    agg = (df[sel].groupby(others, dropna=False)[value_col]
           .sum()
           .reset_index())
    agg[col] = new_name
    agg = agg[df.columns]

    return pd.concat([df[~sel], agg], ignore_index=True)


def replace_na_with_zero(s):
    """ Replace missing values with zero unless all values are missing """
    if s.isna().all():
        return s
    return s.fillna(0)


def proportions(df, by, value_col="value"):
    """ Calculate shares of values within groups


    Parameters
    ----------
    df : DataFrame
        Long format dataframe with a value column.
    by : list of str
        Columns defining the groups the shares are calculated for.
    value_col : str, optional
        Name of the value column. The default is 'value'.

    Returns
    -------
    df : DataFrame
        Copy of the dataframe with values replaced by shares. Groups with only
        missing values remain missing, otherwise missing values are treated
        as zero.

    """

    def shares(s):
        s = replace_na_with_zero(s)
        return s / s.sum()

    df = df.copy()
    df[value_col] = df.groupby(by)[value_col].transform(shares)

    return df


def interpolate_missing_periods(df, periods, period_col="period",
                                value_col="value", expand_values=False):
    """ Interpolate values for missing periods


    Parameters
    ----------
    df : DataFrame
        Long format dataframe. All columns apart from the period and value
        column identify a series.
    periods : list of int
        Periods that the returned dataframe is to cover.
    period_col : str, optional
        Name of the period column. The default is 'period'.
    value_col : str, optional
        Name of the value column. The default is 'value'.
    expand_values : bool, optional
        If to extend the first/last value of each series to periods outside
        the range of available data. Otherwise these remain missing.
        The default is False.

    Returns
    -------
    df_ip : DataFrame
        Dataframe with one row per series and period in `periods`.

    """

    periods = [int(p) for p in periods]
    ocol = [c for c in df.columns if c not in [period_col, value_col]]

    all_periods = sorted(set(periods)
                         | set(df[period_col].dropna().astype(int).unique()))

    df_ip = df.copy()
    df_ip[period_col] = df_ip[period_col].astype(int)
    df_ip = df_ip.set_index(ocol + [period_col])[value_col].unstack(period_col)
    df_ip = df_ip.reindex(columns=all_periods)

    # interpolate along periods (linear in the period value)
    if expand_values:
        df_ip = df_ip.T.interpolate(method="index", limit_direction="both").T
    else:
        df_ip = df_ip.T.interpolate(method="index", limit_area="inside").T

    df_ip = df_ip.loc[:, periods]
    df_ip.columns.name = period_col
    df_ip = df_ip.reset_index().melt(id_vars=ocol, var_name=period_col,
                                     value_name=value_col)
    df_ip[period_col] = df_ip[period_col].astype(int)

    return df_ip[df.columns]


def convert_units(df, conversion, unit_col="unit", value_col="value"):
    """ Convert values to different units


    Parameters
    ----------
    df : DataFrame
        Long format dataframe with a unit and value column.
    conversion : DataFrame or list
        Conversion table with columns 'from', 'to', 'factor' or list of
        [from, to, factor] entries.
    unit_col : str, optional
        Name of the unit column. The default is 'unit'.
    value_col : str, optional
        Name of the value column. The default is 'value'.

    Returns
    -------
    df : DataFrame
        Dataframe with converted values and units. Rows with units not
        covered by the conversion table are left unchanged.

    """

    if not isinstance(conversion, pd.DataFrame):
        conversion = pd.DataFrame(conversion, columns=["from", "to", "factor"])
    conversion = conversion.drop_duplicates("from").set_index("from")

    cols = df.columns
    df = df.copy()

    known = df[unit_col].isin(conversion.index)
    unknown = df.loc[~known & df[unit_col].notna(), unit_col].unique()
    if len(unknown) > 0:
        logger.warning("No conversion factor for unit(s) "
                       + ", ".join(sorted(str(u) for u in unknown))
                       + ". Values are left unchanged.")

    df.loc[known, value_col] = (df.loc[known, value_col]
                                * df.loc[known, unit_col].map(conversion["factor"]).astype(float))
    df.loc[known, unit_col] = df.loc[known, unit_col].map(conversion["to"])

    return df[cols]


def complete_grid(df, cols, values, value_col="value"):
    """ Complete a long format dataframe to all combinations of some columns


    Parameters
    ----------
    df : DataFrame
        Long format dataframe.
    cols : list of str
        Columns for which all combinations are to be present.
    values : dict
        Optional dictionary mapping a column to the complete list of its
        items. Columns not given use the items present in `df`.
    value_col : str, optional
        Name of the value column. The default is 'value'.

    Returns
    -------
    df : DataFrame
        Dataframe with missing combinations added as missing values.

    """

    levels = [values[c] if c in values else df[c].dropna().unique()
              for c in cols]
    ind = pd.MultiIndex.from_product(levels, names=cols)
    df = df.set_index(cols)[value_col]
    df = df[~df.index.duplicated()].reindex(ind)

    return df.reset_index()


# The mock_snakemake function is largely adopted from PyPSA-EUR (Copyright
# 2017-2023 The PyPSA-Eur Authors) under an MIT licence.
def mock_snakemake(rulename, **wildcards):
    """
    This function is expected to be executed from the package directory of
    the snakemake project. It returns a snakemake.script.Snakemake object,
    based on the Snakefile.
    If a rule has wildcards, you have to specify them in **wildcards.
    Parameters
    ----------
    rulename: str
        name of the rule for which the snakemake object should be generated
    **wildcards:
        keyword arguments fixing the wildcards. Only necessary if wildcards are
        needed.

    Returns
    ----------
    snakemake : Snakemake
        Mock snakemake
    """
    import os

    import snakemake as sm
    from packaging.version import Version, parse
    from snakemake.script import Snakemake

    script_dir = Path(__file__).parent.resolve()
    snakefile = script_dir / "Snakefile"
    if not snakefile.exists():
        raise FileNotFoundError(f"No Snakefile found in {script_dir}")

    kwargs = dict(rerun_triggers=[]) if parse(sm.__version__) > Version("7.7.0") else {}
    workflow = sm.Workflow(str(snakefile), overwrite_configfiles=[], **kwargs)
    workflow.include(str(snakefile))
    workflow.global_resources = {}
    rule = workflow.get_rule(rulename)
    dag = sm.dag.DAG(workflow, rules=[rule])
    job = sm.jobs.Job(rule, dag, dict(wildcards))

    def make_accessable(*ios):
        for io in ios:
            for i in range(len(io)):
                io[i] = os.path.abspath(io[i])

    make_accessable(job.input, job.output, job.log)
    snakemake = Snakemake(
        job.input,
        job.output,
        job.params,
        job.wildcards,
        job.threads,
        job.resources,
        job.log,
        job.dag.workflow.config,
        job.rule.name,
        None,
    )
    # create log and output dir if not existent
    for path in list(snakemake.log) + list(snakemake.output):
        Path(path).parent.mkdir(parents=True, exist_ok=True)

    return snakemake
