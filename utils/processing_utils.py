from pathlib import Path
from typing import Union
import numpy as np
import pandas as pd
import constants as c
import logging
from utils.errors import DataValidityError


log = logging.getLogger(__name__)


# --- Loading ---
def load_metabolism_data(path: Union[str, Path]) -> pd.DataFrame:
    """
    Load the per site-year metabolism table from disk.
    :param path: .parquet, .feather or .csv file with one row per site-year.
    :return: DataFrame with the raw observation columns.
    """
    path = Path(path)
    suffix = path.suffix.lower()

    if suffix == '.parquet':
        df = pd.read_parquet(path)
    elif suffix == '.feather':
        df = pd.read_feather(path)
    elif suffix == '.csv':
        df = pd.read_csv(path)
    else:
        raise ValueError(f"Unsupported file type '{suffix}' for {path}")

    missing = [col for col in c.REQUIRED_COLUMNS if col not in df.columns]
    if missing:
        raise DataValidityError(f"{path.name} is missing required columns: {missing}")

    log.info(f"Loaded {len(df)} site-years from {path}")
    return df


# --- Preconditions ---
def find_invalid_records(df: pd.DataFrame) -> pd.DataFrame:
    """
    Flag rows that would produce non-finite transformed values.
    Missing values count as violations since every comparison with NaN is False.
    :param df: raw observation DataFrame.
    :return: boolean DataFrame, one column per precondition, True where violated.
    """
    ar1 = df[c.AR1_COL]
    return pd.DataFrame({
        'GPP > 0': ~(df[c.GPP_COL] > 0),
        'ER < 0': ~(df[c.ER_COL] < 0),
        'AR1 in (0, 1)': ~((ar1 > 0) & (ar1 < 1)),
        'NPP > 0': ~(df[c.NPP_COL] > 0),
        'watershed area > 0': ~(df[c.AREA_COL] > 0),
        'width > 0': ~(df[c.WIDTH_COL] > 0),
    }, index=df.index)


def validate_records(df: pd.DataFrame) -> None:
    """
    Raise DataValidityError if any record violates a transform precondition.
    :param df: raw observation DataFrame.
    """
    violations = find_invalid_records(df)
    bad_rows = violations.any(axis=1)
    if not bad_rows.any():
        return

    details = []
    for condition in violations.columns:
        rows = violations.index[violations[condition]].tolist()
        if rows:
            details.append(f"{condition} violated in rows {rows[:10]}{' ...' if len(rows) > 10 else ''}")

    raise DataValidityError(f"{int(bad_rows.sum())} of {len(df)} records are invalid: " + "; ".join(details))


def filter_valid_records(df: pd.DataFrame) -> pd.DataFrame:
    """
    Drop records that violate a transform precondition. This is the upstream
    filter the caller applies before transforming.
    :param df: raw observation DataFrame.
    :return: filtered copy of the DataFrame.
    """
    violations = find_invalid_records(df)
    mask = ~violations.any(axis=1)

    for condition, count in violations.sum().items():
        if count:
            log.info(f"Dropping {count} site-years failing '{condition}'")

    log.info(f"Kept {int(mask.sum())} of {len(df)} site-years after filtering")
    return df.loc[mask].copy()


# --- Transform pipeline ---
def arrhenius_temperature(temp_c, k: float = c.BOLTZMANN_EV):
    """
    Convert water temperature to Arrhenius form, 1 / (k * T[K]).
    :param temp_c: temperature in degrees Celsius (scalar or array-like).
    :param k: Boltzmann constant in eV/K.
    :return: temperature in Kelvin and its Arrhenius transform.
    """
    temp_k = temp_c + c.KELVIN_OFFSET
    return temp_k, 1.0 / (k * temp_k)


def transform(df: pd.DataFrame, validate: bool = True) -> pd.DataFrame:
    """
    Map raw observation records to the transformed variable set.
    Every output row depends on its own input row only; index and order are preserved.
    :param df: raw observation DataFrame.
    :param validate: raise DataValidityError on records outside the transform domain.
        With validate=False, such records yield +/-inf or NaN instead.
    :return: DataFrame with the columns in constants.TRANSFORMED_COLUMNS.
    """
    if validate:
        validate_records(df)

    gpp = df[c.GPP_COL].astype(float)
    er = df[c.ER_COL].astype(float)
    ar1 = df[c.AR1_COL].astype(float)
    npp = df[c.NPP_COL].astype(float)
    area = df[c.AREA_COL].astype(float)
    width = df[c.WIDTH_COL].astype(float)
    temp_k, temp_arrhenius = arrhenius_temperature(df[c.TEMP_COL].astype(float))

    with np.errstate(divide='ignore', invalid='ignore'):
        out = pd.DataFrame({
            'log_gpp': np.log(gpp),
            'log_er': np.log(-er),
            'logit_ar1': np.log(ar1 / (1.0 - ar1)),
            'log_npp': np.log(npp),
            'npp_scaled': npp / 1000.0,
            'log_area': np.log(area),
            'log_width': np.log(width),
            'nep': gpp + er,
            'temp_K': temp_k,
            'temp_arrhenius': temp_arrhenius,
        }, index=df.index)

    return out[c.TRANSFORMED_COLUMNS]


def build_model_table(df: pd.DataFrame, validate: bool = True) -> pd.DataFrame:
    """
    Build the model-ready table: transformed variables plus renamed passthrough columns
    (site, year, light, discharge CV/amplitude/skewness, latitude, temperature).
    :param df: raw observation DataFrame.
    :param validate: forwarded to transform().
    :return: model-ready DataFrame aligned with the input index.
    """
    transformed = transform(df, validate=validate)

    passthrough = {raw: name for raw, name in c.PASSTHROUGH_COLUMNS.items() if raw in df.columns}
    extra = df[list(passthrough)].rename(columns=passthrough)

    return pd.concat([extra, transformed], axis=1)
