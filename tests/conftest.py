"""Shared fixtures for the metabolism SEM test suite.

Raw site-year records are simulated from a known linear path model so that
fits recover sensible coefficients. The simulation works in the transformed
space and inverts each transform to produce raw columns.
"""

import numpy as np
import pandas as pd
import pytest

import constants as c
from utils.processing_utils import build_model_table
from utils.sem_utils import FitResult


# =============================================================================
# Raw record fixtures
# =============================================================================

@pytest.fixture
def make_raw():
    """Factory for a small, valid raw table; keyword overrides replace columns.

    Examples
    --------
    >>> def test_zero_gpp(make_raw):
    ...     df = make_raw(**{c.GPP_COL: [0.0, 5.0, 7.0]})
    """
    def _make(**overrides):
        df = pd.DataFrame({
            c.SITE_COL: ["nwis_01", "nwis_02", "nwis_03"],
            c.YEAR_COL: [2012, 2013, 2014],
            c.GPP_COL: [520.0, 5.0, 1210.0],
            c.ER_COL: [-890.0, -6.0, -1005.0],
            c.AR1_COL: [0.92, 0.5, 0.35],
            c.DISCH_CV_COL: [1.1, 0.6, 2.3],
            c.DISCH_AMP_COL: [3.2, 1.4, 6.8],
            c.DISCH_SKEW_COL: [4.5, 1.2, 9.1],
            c.NPP_COL: [640.0, 1000.0, 455.0],
            c.AREA_COL: [85.0, 1.0, 3400.0],
            c.WIDTH_COL: [9.5, 2.2, 61.0],
            c.TEMP_COL: [14.2, 20.0, 8.7],
            c.LIGHT_COL: [4100.0, 2650.0, 5870.0],
            c.LAT_COL: [39.1, 44.6, 30.2],
        })
        for col, values in overrides.items():
            df[col] = values
        return df

    return _make


@pytest.fixture
def simulate_raw():
    """Factory for raw records generated from a known path model.

    True structure (transformed scale):
        log_width <- log_area
        light     <- log_width
        skew      <- log_npp
        log_gpp   <- light, skew, temp_arrhenius
        log_er    <- log_gpp, log_npp, temp_arrhenius
    """
    def _simulate(n=400, seed=20240601):
        rng = np.random.default_rng(seed)

        log_area = rng.normal(3.0, 1.0, n)
        log_width = 1.0 + 0.5 * log_area + rng.normal(0, 0.5, n)
        light = 5.0 + 0.8 * log_width + rng.normal(0, 0.5, n)
        log_npp = rng.normal(6.0, 0.4, n)
        skew = 2.0 - 0.8 * (log_npp - 6.0) + rng.normal(0, 0.5, n)
        temp_arr = rng.normal(40.0, 0.5, n)
        log_gpp = 2.0 + 0.5 * light - 0.3 * skew - 0.4 * (temp_arr - 40.0) + rng.normal(0, 0.5, n)
        log_er = 3.0 + 0.6 * log_gpp + 0.5 * (log_npp - 6.0) - 0.3 * (temp_arr - 40.0) + rng.normal(0, 0.4, n)
        logit_ar1 = rng.normal(0.0, 1.0, n)

        return pd.DataFrame({
            c.SITE_COL: [f"site_{i:03d}" for i in range(n)],
            c.YEAR_COL: 2010 + (np.arange(n) % 8),
            c.GPP_COL: np.exp(log_gpp),
            c.ER_COL: -np.exp(log_er),
            c.AR1_COL: 1.0 / (1.0 + np.exp(-logit_ar1)),
            c.DISCH_CV_COL: rng.gamma(2.0, 0.5, n),
            c.DISCH_AMP_COL: rng.gamma(3.0, 1.0, n),
            c.DISCH_SKEW_COL: skew,
            c.NPP_COL: np.exp(log_npp),
            c.AREA_COL: np.exp(log_area),
            c.WIDTH_COL: np.exp(log_width),
            c.TEMP_COL: 1.0 / (c.BOLTZMANN_EV * temp_arr) - c.KELVIN_OFFSET,
            c.LIGHT_COL: light,
            c.LAT_COL: rng.uniform(25.0, 48.0, n),
        })

    return _simulate


@pytest.fixture
def model_table(simulate_raw):
    """Model-ready table built from simulated raw records."""
    return build_model_table(simulate_raw())


# =============================================================================
# Fit result fixtures
# =============================================================================

@pytest.fixture
def make_fit():
    """Factory for hand-built FitResult objects (no estimator involved)."""
    def _make(name, chi2=1.0, dof=2.0, p=0.6, n_obs=100, r2=None):
        return FitResult(
            name=name,
            n_obs=n_obs,
            dof=dof,
            chi2=chi2,
            chi2_p_value=p,
            fit_stats={"DoF": dof, "chi2": chi2, "chi2 p-value": p},
            path_coefficients=pd.DataFrame(columns=["response", "predictor", "estimate"]),
            r2=r2 or {},
            residual_correlations=pd.DataFrame()
        )

    return _make
