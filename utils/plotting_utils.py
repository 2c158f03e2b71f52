import pandas as pd
import matplotlib.pyplot as plt
import seaborn as sns
import numpy as np
from pathlib import Path
from typing import Dict, Optional
from mpl_toolkits.axes_grid1 import make_axes_locatable
import constants as c


# ---  Diagnostic plots for the SEM comparison ---
def plot_correlation_matrix(
        corr_plot: pd.DataFrame,
        output_dir: Path,
        n_obs: int,
        pretty_names: Optional[Dict[str, str]] = None,
        file_name: str = "correlation_matrix.png",
        cbar_label: str = "Pearson correlation (r)",
        title: Optional[str] = None
) -> Path:
    """
    Lower-triangular correlation heatmap.
    :param corr_plot: square correlation DataFrame
    :param output_dir: directory to save the figure in
    :param n_obs: number of site-years, shown in the title
    :param pretty_names: mapping from column names to axis labels
    :param file_name: output file name
    :param cbar_label: colour bar label
    :param title: figure title
    :return: path of the saved figure
    """
    pretty_names = c.PRETTY_NAMES if pretty_names is None else pretty_names
    size = max(6, 0.7 * len(corr_plot))

    plt.figure(figsize=(size * 1.25, size))
    mask = np.triu(np.ones_like(corr_plot, dtype=bool))

    ax = sns.heatmap(
        corr_plot,
        mask=mask,
        annot=True,
        fmt=".2f",
        cmap="vlag",
        vmin=-1, vmax=1,
        linewidths=0.4,
        square=True,
        cbar=False
    )

    divider = make_axes_locatable(ax)
    cax = divider.append_axes("bottom", size="3%", pad=1.8)
    norm = plt.Normalize(vmin=-1, vmax=1)
    sm = plt.cm.ScalarMappable(cmap="vlag", norm=norm)
    cb = plt.colorbar(sm, cax=cax, orientation="horizontal")
    cb.ax.set_xlabel(cbar_label, fontsize=12, labelpad=8)
    cb.outline.set_visible(False)

    ax.set_aspect('equal')
    ax.set_xticklabels(
        [pretty_names.get(x.get_text(), x.get_text()) for x in ax.get_xticklabels()],
        fontsize=11,
        rotation=90
    )
    ax.set_yticklabels(
        [pretty_names.get(y.get_text(), y.get_text()) for y in ax.get_yticklabels()],
        fontsize=11,
        rotation=0
    )
    ax.tick_params(axis='both', which='both', length=0)

    fig = plt.gcf()
    fig.suptitle(title or f"Correlation Matrix (N={n_obs})", fontsize=13, y=0.98)
    plt.tight_layout()

    out_path = Path(output_dir, file_name)
    plt.savefig(out_path, dpi=300, bbox_inches="tight")
    plt.close()
    return out_path


def plot_residual_correlations(fit, output_dir: Path, n_obs: Optional[int] = None) -> Optional[Path]:
    """
    Heatmap of observed minus model-implied correlations for one fitted candidate.
    :param fit: FitResult
    :param output_dir: directory to save the figure in
    :param n_obs: sample size for the title (defaults to fit.n_obs)
    :return: path of the saved figure, or None for a failed fit
    """
    if fit.failed or fit.residual_correlations is None:
        return None

    return plot_correlation_matrix(
        fit.residual_correlations,
        output_dir,
        n_obs or fit.n_obs,
        file_name=f"{fit.name}_residual_correlations.png",
        cbar_label="Residual correlation",
        title=f"{fit.name}: residual correlations (N={n_obs or fit.n_obs})"
    )


def plot_explained_variance(df_compare: pd.DataFrame, output_dir: Path) -> Path:
    """
    Grouped bar chart of R2 per endogenous variable for each candidate, in catalog order.
    Failed candidates appear with empty bars.
    :param df_compare: output of sem_utils.comparison_table
    :param output_dir: directory to save the figure in
    :return: path of the saved figure
    """
    r2_cols = [col for col in df_compare.columns if col.startswith("R2_")]
    labels = df_compare["Model"].tolist()
    x = np.arange(len(labels))
    width = 0.8 / max(1, len(r2_cols))

    cmap = plt.get_cmap("vlag")
    fig, ax = plt.subplots(figsize=(max(8, 1.6 * len(labels)), 4))

    for i, col in enumerate(r2_cols):
        values = pd.to_numeric(df_compare[col], errors="coerce").fillna(0.0)
        color = cmap(i / max(1, len(r2_cols) - 1))
        bars = ax.bar(x - 0.4 + width * (i + 0.5), values, width,
                      label=c.PRETTY_NAMES.get(col[3:], col[3:]), color=color)
        for b in bars:
            yval = b.get_height()
            if yval > 0:
                ax.text(b.get_x() + b.get_width() / 2, yval + 0.01, f"{yval:.2f}", ha='center', fontsize=8)

    ax.set_ylabel("Explained variance ($R^2$)", fontsize=12)
    ax.set_title("Candidate Models", fontsize=12)
    ax.set_xticks(x)
    ax.set_xticklabels(labels, fontsize=9, rotation=20, ha='right')
    ax.set_ylim(0, 1.05)

    ax.grid(axis='y', linestyle='--', alpha=0.5)
    ax.legend(fontsize=9, loc='upper left')

    plt.tight_layout()
    out_path = Path(output_dir, "explained_variance.png")
    plt.savefig(out_path, dpi=300)
    plt.close()
    return out_path
