import configparser
import logging
import warnings
from pathlib import Path

import matplotlib
import pandas as pd

import constants as c
import utils.processing_utils
import utils.sem_utils
import utils.plotting_utils
from utils.model_spec import build_catalog

# semopy emits FutureWarnings from pandas internals
warnings.filterwarnings("ignore", category=FutureWarning)

matplotlib.use("Agg")
logging.basicConfig(level=logging.INFO)
log = logging.getLogger(__name__)


def load_config(path="config.ini") -> configparser.ConfigParser:
    config = configparser.ConfigParser(interpolation=configparser.ExtendedInterpolation())
    if not config.read(path):
        raise FileNotFoundError(f"Configuration file {path} not found")
    return config


def save_fit_outputs(results, output_dir: Path) -> None:
    """
    Write path estimates and residual correlations of every successful candidate.
    :param results: output of sem_utils.compare_models
    :param output_dir: output directory
    """
    for spec, fit in results:
        if fit.failed:
            continue
        fit.path_coefficients.to_csv(output_dir / f"{spec.name}_estimates.csv", index=False)
        fit.residual_correlations.to_csv(output_dir / f"{spec.name}_residual_correlations.csv")


# -------------------------------------------------------------------
# MAIN PIPELINE
# -------------------------------------------------------------------
def main(config_path="config.ini"):
    # ============================================================
    # 0. CONFIGURATION
    # ============================================================
    config = load_config(config_path)
    data_file = Path(config["filenames"]["metabolism_data_file"])
    output_dir = Path(config["paths"]["output_dir"])
    output_dir.mkdir(parents=True, exist_ok=True)

    objective = config.get("model", "objective", fallback="MLW")
    solver = config.get("model", "solver", fallback="SLSQP")
    alpha = config.getfloat("report", "alpha", fallback=c.CHI2_ALPHA)
    plot_diagnostics = config.getboolean("report", "plot_diagnostics", fallback=True)

    # ============================================================
    # 1. LOAD AND FILTER RAW DATA
    # ============================================================
    df_raw = utils.processing_utils.load_metabolism_data(data_file)
    df_raw = utils.processing_utils.filter_valid_records(df_raw)

    # ============================================================
    # 2. TRANSFORMATIONS
    # ============================================================
    df_model = utils.processing_utils.build_model_table(df_raw)
    df_model.to_csv(output_dir / "model_table.csv")
    log.info(f"Model table: {len(df_model)} site-years, {df_model.shape[1]} columns")

    # ============================================================
    # 3. CORRELATION MATRIX (MODEL-READY VARIABLES)
    # ============================================================
    log.info("--- Building Correlation Matrix ---")
    corr_matrix = df_model.select_dtypes("number").corr()
    corr_matrix.to_csv(output_dir / "correlation_matrix.csv")
    if plot_diagnostics:
        utils.plotting_utils.plot_correlation_matrix(corr_matrix, output_dir, len(df_model))

    # ============================================================
    # 4. MODEL CATALOG
    # ============================================================
    candidates = build_catalog()
    for spec in candidates:
        log.info(f"{spec.name}:\n{spec.to_syntax()}")

    # ============================================================
    # 5. COMPARISON LOOP
    # ============================================================
    log.info("--- Running Model Comparison Loop ---")
    results = utils.sem_utils.compare_models(df_model, candidates, objective=objective, solver=solver)

    for spec, fit in results:
        if fit.failed:
            continue
        vif_df = utils.sem_utils.check_vif(df_model, spec)
        if vif_df.empty:
            continue
        max_vif = vif_df["VIF"].max()
        if max_vif > 5:
            log.warning(f" > Caution: Moderate multicollinearity in {spec.name} (Max VIF = {max_vif:.2f})")
        else:
            log.info(f" > VIF OK (Max VIF = {max_vif:.2f})")

    save_fit_outputs(results, output_dir)

    df_compare = utils.sem_utils.comparison_table(results, alpha=alpha)
    df_compare.to_csv(output_dir / "SEM_model_comparison.csv", index=False)
    print(df_compare.to_string(index=False))

    # ============================================================
    # 6. DIAGNOSTIC PLOTS
    # ============================================================
    if plot_diagnostics:
        for _, fit in results:
            utils.plotting_utils.plot_residual_correlations(fit, output_dir)
        utils.plotting_utils.plot_explained_variance(df_compare, output_dir)

    log.info("SEM modeling complete. Check output directory for results.")
    return results


if __name__ == "__main__":
    main()
