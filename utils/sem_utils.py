import logging
from typing import Callable, Optional, Sequence

import numpy as np
import pandas as pd
import statsmodels.api as sm
from pydantic import BaseModel, ConfigDict, Field
from scipy.stats import chi2
from semopy import Model
from semopy.stats import calc_stats
from statsmodels.stats.outliers_influence import variance_inflation_factor

import constants as c
from utils.errors import NumericalFitError
from utils.model_spec import ModelSpecification

log = logging.getLogger(__name__)


class FitResult(BaseModel):
    """
    Outcome of fitting one specification. A failed fit keeps its name and error
    message and leaves every statistic empty.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str
    failed: bool = False
    error: Optional[str] = None
    n_obs: Optional[int] = None
    dof: Optional[float] = None
    chi2: Optional[float] = None
    chi2_p_value: Optional[float] = None
    fit_stats: dict[str, float] = Field(default_factory=dict)
    path_coefficients: Optional[pd.DataFrame] = None
    r2: dict[str, float] = Field(default_factory=dict)
    residual_correlations: Optional[pd.DataFrame] = None

    @classmethod
    def failure(cls, name: str, error: str) -> "FitResult":
        return cls(name=name, failed=True, error=error)

    @property
    def chi2_df_ratio(self) -> Optional[float]:
        if self.failed or not self.dof or self.chi2 is None:
            return None
        return self.chi2 / self.dof


# -------------------------------------------------------------------
# INSPECTION OF FITTED semopy MODELS
# -------------------------------------------------------------------

def extract_path_coefficients(model: Model) -> pd.DataFrame:
    """
    Collect the regression paths (op '~') of a fitted model.
    :param model: fitted semopy Model
    :return: DataFrame with response, predictor, estimate, std_estimate, std_err, z_value, p_value
    """
    est = model.inspect(std_est=True)
    paths = est[est["op"] == "~"]

    out = pd.DataFrame({
        "response": paths["lval"].astype(str),
        "predictor": paths["rval"].astype(str),
        "estimate": pd.to_numeric(paths["Estimate"], errors="coerce"),
        "std_estimate": pd.to_numeric(paths["Est. Std"], errors="coerce"),
        "std_err": pd.to_numeric(paths["Std. Err"], errors="coerce"),
        "z_value": pd.to_numeric(paths["z-value"], errors="coerce"),
        "p_value": pd.to_numeric(paths["p-value"], errors="coerce"),
    })
    return out.reset_index(drop=True)


def _implied_covariance(model: Model) -> pd.DataFrame:
    sigma = model.calc_sigma()[0]
    obs = list(model.vars["observed"])
    return pd.DataFrame(np.asarray(sigma, dtype=float), index=obs, columns=obs)


def _cov_to_corr(cov: pd.DataFrame) -> pd.DataFrame:
    sd = np.sqrt(np.diag(cov.values))
    corr = cov.values / np.outer(sd, sd)
    return pd.DataFrame(corr, index=cov.index, columns=cov.columns)


def calculate_sem_r2(model: Model, endogenous: Sequence[str]) -> dict:
    """
    R2 = 1 - (residual variance / model-implied total variance) for each endogenous variable.
    :param model: fitted semopy Model
    :param endogenous: response variables of the specification
    :return: {variable: R2}, clipped to [0, 1]
    """
    stats = model.inspect()
    implied = _implied_covariance(model)

    r2_results = {}
    for _, row in stats.iterrows():
        if row["op"] == "~~" and row["lval"] == row["rval"] and row["lval"] in endogenous:
            var_name = row["lval"]
            total_variance = implied.loc[var_name, var_name]
            if total_variance <= 0:
                r2_results[var_name] = 0.0
                continue
            r2 = 1 - (float(row["Estimate"]) / total_variance)
            r2_results[var_name] = max(0.0, min(1.0, r2))

    return r2_results


def calculate_residual_correlations(model: Model) -> pd.DataFrame:
    """
    Observed minus model-implied correlations over all modelled variables.
    Large absolute entries point at missing paths.
    :param model: fitted semopy Model
    :return: square DataFrame indexed by variable name
    """
    implied = _implied_covariance(model)
    obs = list(implied.index)
    observed = pd.DataFrame(np.asarray(model.mx_cov, dtype=float), index=obs, columns=obs)
    return _cov_to_corr(observed) - _cov_to_corr(implied)


# -------------------------------------------------------------------
# ESTIMATOR
# -------------------------------------------------------------------

def check_model_frame(frame: pd.DataFrame, name: str) -> None:
    """
    Reject data the ML estimator cannot handle before calling it.
    :param frame: model frame (one column per model variable)
    :param name: model name for error messages
    """
    values = frame.to_numpy(dtype=float)
    if not np.isfinite(values).all():
        bad = frame.columns[~np.isfinite(values).all(axis=0)].tolist()
        raise NumericalFitError(f"Model {name}: non-finite values in {bad}")

    n_obs, n_vars = values.shape
    if n_obs <= n_vars:
        raise NumericalFitError(f"Model {name}: {n_obs} complete observations for {n_vars} variables")

    cov = np.cov(values, rowvar=False)
    if np.linalg.matrix_rank(cov) < n_vars:
        raise NumericalFitError(f"Model {name}: sample covariance matrix is singular")


def fit_specification(
        spec: ModelSpecification,
        data: pd.DataFrame,
        objective: str = "MLW",
        solver: str = "SLSQP"
) -> FitResult:
    """
    Fit one specification by maximum likelihood with semopy.
    :param spec: validated model specification
    :param data: model-ready table
    :param objective: semopy objective ('MLW' is Wishart maximum likelihood)
    :param solver: scipy solver name passed to semopy
    :return: FitResult; raises NumericalFitError if no finite solution is found
    """
    frame = spec.model_frame(data)
    check_model_frame(frame, spec.name)

    try:
        model = Model(spec.to_syntax())
        res = model.fit(frame, obj=objective, solver=solver)
        fit = calc_stats(model)
        paths = extract_path_coefficients(model)
        r2 = calculate_sem_r2(model, spec.endogenous)
        resid = calculate_residual_correlations(model)
    except Exception as e:
        raise NumericalFitError(f"Model {spec.name} failed: {e}") from e

    if not getattr(res, "success", True):
        raise NumericalFitError(f"Model {spec.name} did not converge: {getattr(res, 'message', '')}")

    fit_stats = {m: float(fit[m].iloc[0]) for m in c.FIT_METRICS if m in fit.columns}
    if not np.isfinite(fit_stats.get("chi2", np.nan)) or not np.isfinite(paths["estimate"]).all():
        raise NumericalFitError(f"Model {spec.name}: non-finite chi-square or path estimates")

    return FitResult(
        name=spec.name,
        n_obs=len(frame),
        dof=fit_stats.get("DoF"),
        chi2=fit_stats.get("chi2"),
        chi2_p_value=fit_stats.get("chi2 p-value"),
        fit_stats=fit_stats,
        path_coefficients=paths,
        r2=r2,
        residual_correlations=resid
    )


# -------------------------------------------------------------------
# COMPARISON
# -------------------------------------------------------------------

def compare_models(
        data: pd.DataFrame,
        candidates: Sequence[ModelSpecification],
        estimator: Callable[[ModelSpecification, pd.DataFrame], FitResult] = fit_specification,
        **fit_kwargs
) -> list:
    """
    Fit every candidate, in the given order, and return all results.
    Specification errors are raised before any fit. A numerical failure is recorded
    for that candidate only and the loop carries on. Results are never reordered.
    :param data: model-ready table
    :param candidates: ordered specifications
    :param estimator: fitting function (spec, data) -> FitResult
    :param fit_kwargs: passed on to the estimator
    :return: list of (ModelSpecification, FitResult) in candidate order
    """
    for spec in candidates:
        spec.validate_data(data)

    results = []
    for spec in candidates:
        log.info(f">> Fitting model: {spec.name}")
        try:
            result = estimator(spec, data.copy(), **fit_kwargs)
        except NumericalFitError as e:
            log.error(str(e))
            result = FitResult.failure(spec.name, str(e))
        else:
            log.info(f"   chi2={result.chi2}, DoF={result.dof}, p={result.chi2_p_value}")
        results.append((spec, result))

    return results


def chi2_difference(restricted: FitResult, general: FitResult) -> Optional[tuple]:
    """
    Chi-square difference (likelihood ratio) test for two nested models.
    :param restricted: fit of the model with fewer free paths (more DoF)
    :param general: fit of the model with more free paths
    :return: (delta chi2, delta DoF, p-value), or None when the test does not apply
    """
    if restricted.failed or general.failed:
        return None
    if None in (restricted.chi2, restricted.dof, general.chi2, general.dof):
        return None
    if restricted.n_obs != general.n_obs:
        log.warning(f"Cannot compare {restricted.name} and {general.name}: different sample sizes")
        return None

    df_diff = restricted.dof - general.dof
    if df_diff <= 0:
        return None

    lr = restricted.chi2 - general.chi2
    if lr < 0:
        log.warning(f"Cannot compare {restricted.name} and {general.name}: chi2 increases, models are not nested")
        return None
    p = float(chi2.sf(lr, df_diff))

    log.info(f"Delta chi2 {restricted.name} vs {general.name}: {lr:.4f}, DoFD: {df_diff:g}, p-value: {p:.4f}")
    return lr, df_diff, p


def comparison_table(results: Sequence, alpha: float = c.CHI2_ALPHA) -> pd.DataFrame:
    """
    Tabulate all candidates side by side, one row per candidate in input order.
    'chi2_not_rejected' (p >= alpha) is an informal adequacy signal; model choice is
    left to the analyst.
    :param results: output of compare_models
    :param alpha: chi-square p-value threshold for the informal signal
    :return: DataFrame
    """
    rows = []
    previous = None

    for spec, fit in results:
        res = {
            "Model": spec.name,
            "Status": "failed" if fit.failed else "ok",
            "Error": fit.error,
            "N": fit.n_obs,
        }

        for m in c.FIT_METRICS:
            res[m] = fit.fit_stats.get(m)

        res["chi2/DoF"] = fit.chi2_df_ratio
        res["chi2_not_rejected"] = None if fit.chi2_p_value is None else bool(fit.chi2_p_value >= alpha)

        for var in spec.endogenous:
            res[f"R2_{var}"] = fit.r2.get(var)

        if previous is not None:
            prev_spec, prev_fit = previous
            res["Added_paths"] = "; ".join(f"{p} -> {r}" for p, r in spec.added_paths(prev_spec))

            test = chi2_difference(prev_fit, fit) if prev_spec.is_lr_nested_in(spec) else None
            if test is not None:
                res["Delta_chi2"], res["Delta_DoF"], res["Delta_p"] = test

        rows.append(res)
        previous = (spec, fit)

    return pd.DataFrame(rows)


# -------------------------------------------------------------------
# DIAGNOSTICS
# -------------------------------------------------------------------

def check_vif(data: pd.DataFrame, spec: ModelSpecification) -> pd.DataFrame:
    """
    Variance inflation factors of the predictors of each multi-predictor equation.
    :param data: model-ready table
    :param spec: model specification
    :return: DataFrame with response, feature and VIF columns
    """
    log.info(f"--- Calculating Variance Inflation Factor (VIF) for {spec.name} ---")
    frame = spec.model_frame(data)

    rows = []
    for eq in spec.equations:
        if len(eq.predictors) < 2:
            continue
        X = sm.add_constant(frame[list(eq.predictors)])
        for i, feature in enumerate(X.columns):
            if feature == "const":
                continue
            rows.append({
                "response": eq.response,
                "feature": feature,
                "VIF": variance_inflation_factor(X.values, i)
            })

    return pd.DataFrame(rows, columns=["response", "feature", "VIF"])
