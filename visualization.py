# visualization.py
# -*- coding: utf-8 -*-
"""
Visualization of anchor-based classifiers (LocallyLinearSVC, ClusteredSVC):
samples and anchors are embedded together into 2D with classical MDS,
t-SNE and UMAP. For 2D inputs an additional panel shows the decision
regions of the model in input space.

Public API:
    classical_mds_from_distance
    visualize_anchors_and_model
"""

from typing import Dict, Tuple, List, Union, Any, Optional
from pathlib import Path

import numpy as np
import pandas as pd

from scipy.spatial.distance import cdist
from sklearn.manifold import TSNE
from umap import UMAP

import matplotlib.pyplot as plt

from functions import _filter_kwargs

__author__ = 'Lukas Bader, Dietlind Zühlke'
__copyright__ = 'Copyright 2026, Lukas Bader, Dietlind Zühlke'
__license__ = 'GPLv3'
__version__ = '1.0.0'
__maintainer__ = 'Lukas Bader'
__email__ = 'lukas.bader@pferd.com'


def classical_mds_from_distance(D: np.ndarray, n_components: int = 2) -> np.ndarray:
    """
    Classical MDS (Torgerson) embedding from a distance matrix.

    Parameters
    ----------
    D : np.ndarray
        Distance matrix (n x n).
    n_components : int, default 2
        Number of output dimensions.

    Returns
    -------
    np.ndarray
        Embedding of shape (n, n_components).
    """
    D = np.asarray(D, dtype=np.float64)
    n = D.shape[0]
    D2 = D ** 2
    J = np.eye(n) - np.ones((n, n)) / n
    B = -0.5 * J @ D2 @ J
    w, V = np.linalg.eigh(B)
    idx = np.argsort(w)[::-1]
    w = w[idx]
    V = V[:, idx]
    L = np.clip(w[:n_components], 0, None)
    Y = V[:, :n_components] * np.sqrt(L)
    return Y


def _check_tsne_perplexity(perplexity: float, n_samples: int) -> None:
    """
    Simple sanity check for t-SNE perplexity:
    rule of thumb: 3 * perplexity < n_samples - 1
    """
    if perplexity >= (n_samples - 1) / 3:
        raise ValueError(
            f"t-SNE: perplexity={perplexity} is too large for n={n_samples}. "
            f"Use < {(n_samples - 1) / 3:.2f}."
        )


def _load_embedding_2d(path: Union[str, Path], expected_n: Optional[int] = None) -> np.ndarray:
    """
    Load a 2D embedding stored as .npy.
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Embedding not found: {p}")
    if p.suffix != ".npy":
        raise ValueError(f"Only .npy is supported, got: {p.suffix}")

    X = np.asarray(np.load(p), float)
    if X.ndim != 2 or X.shape[1] != 2:
        raise ValueError(f"Expected shape (n, 2), got {X.shape} in '{p}'.")
    if expected_n is not None and X.shape[0] != expected_n:
        raise ValueError(
            f"Row count mismatch: expected_n={expected_n}, loaded n={X.shape[0]} from '{p}'."
        )
    return X


def _save_embedding_2d(X: np.ndarray, path: Union[str, Path]) -> None:
    """
    Save a 2D embedding as .npy (atomic write via temporary file).
    """
    p = Path(path)
    if p.suffix != ".npy":
        raise ValueError(f"Only .npy is supported, got: {p.suffix}")
    p.parent.mkdir(parents=True, exist_ok=True)

    X = np.asarray(X, float)
    if X.ndim != 2 or X.shape[1] != 2:
        raise ValueError(f"_save_embedding_2d expects shape (n, 2); got {X.shape}.")

    tmp = p.with_name(p.name + ".tmp.npy")
    np.save(tmp, X)
    tmp.replace(p)


def _model_anchors(model) -> np.ndarray:
    for attr in ("anchors_", "cluster_centers_"):
        A = getattr(model, attr, None)
        if A is not None:
            return np.asarray(A, float)
    raise ValueError("Model has neither anchors_ nor cluster_centers_; call fit() first.")


# --- Styling constants for visualization ---
COL_ANCHOR = "black"
COL_BOUNDARY = "black"

S_DATA = 10
ALPHA_DATA = 0.75
S_ANCHOR = 140
EDGE_LW = 0.8
LW_BOUNDARY = 1.2
ALPHA_FILL = 0.12


def _draw_panel(ax, E: np.ndarray, y_np: np.ndarray, n_samples: int, title: str = "") -> None:
    """
    Draw a single 2D panel with data points per class and the anchors.
    The first n_samples rows of E are samples, the remaining rows anchors.
    """
    for lab in np.unique(y_np):
        mask = y_np == lab
        ax.scatter(E[:n_samples][mask, 0], E[:n_samples][mask, 1],
                   s=S_DATA, alpha=ALPHA_DATA, label=f"Class {lab}")

    ax.scatter(
        E[n_samples:, 0],
        E[n_samples:, 1],
        s=S_ANCHOR,
        marker="P",
        edgecolor="w",
        linewidths=EDGE_LW,
        color=COL_ANCHOR,
        label="Anchor",
    )

    ax.set_title(title)
    ax.set_xlabel(f"{title} 1")
    ax.set_ylabel(f"{title} 2")
    ax.legend(loc="best", fontsize=9)


def _draw_decision_panel(ax, X: np.ndarray, y_np: np.ndarray, model, resolution: int = 200) -> None:
    """Decision regions of model over the bounding box of the 2D samples X."""
    pad = 0.05 * (X.max(0) - X.min(0)).max() + 1e-9
    x_min, x_max = X[:, 0].min() - pad, X[:, 0].max() + pad
    y_min, y_max = X[:, 1].min() - pad, X[:, 1].max() + pad
    xx, yy = np.meshgrid(
        np.linspace(x_min, x_max, resolution),
        np.linspace(y_min, y_max, resolution),
    )
    grid = np.c_[xx.ravel(), yy.ravel()]

    classes = np.asarray(model.classes_)
    pred = model.predict(grid)
    Z = np.searchsorted(classes, pred).reshape(xx.shape)
    ax.contourf(xx, yy, Z, levels=np.arange(len(classes) + 1) - 0.5, alpha=ALPHA_FILL)

    scores = np.asarray(model.decision_function(grid))
    if scores.ndim == 1:
        ax.contour(xx, yy, scores.reshape(xx.shape), levels=[0.0],
                   linewidths=LW_BOUNDARY, linestyles="--", colors=[COL_BOUNDARY])

    _draw_panel(ax, np.vstack([X, _model_anchors(model)]), y_np, X.shape[0], "Input")


def visualize_anchors_and_model(
    model,
    X: Union[np.ndarray, pd.DataFrame],
    y: Union[np.ndarray, pd.Series, List[int]],
    *,
    tsne_params: Optional[Dict[str, Any]] = None,
    umap_params: Optional[Dict[str, Any]] = None,
    figsize=(18, 6),
    random_state: int = 42,
    show: bool = True,
    # MDS I/O
    mds_load_path: Optional[Union[str, Path]] = None,
    mds_save_path: Optional[Union[str, Path]] = None,
    # t-SNE I/O
    tsne_load_path: Optional[Union[str, Path]] = None,
    tsne_save_path: Optional[Union[str, Path]] = None,
    # UMAP I/O
    umap_load_path: Optional[Union[str, Path]] = None,
    umap_save_path: Optional[Union[str, Path]] = None,
) -> Tuple[Any, Tuple[Any, ...], Dict[str, np.ndarray]]:
    """
    Compute 2D embeddings (MDS, t-SNE, UMAP) of the samples together with
    the anchors of a trained model and plot them side by side. If X has
    two features, a fourth panel shows the decision regions in input space.

    Parameters
    ----------
    model : object
        Trained model exposing `anchors_` (LocallyLinearSVC) or
        `cluster_centers_` (ClusteredSVC).
    X : array-like (n x d) or DataFrame
        Samples.
    y : array-like of shape (n,)
        Class labels.
    tsne_params, umap_params : dict, optional
        Additional keyword arguments passed to TSNE/UMAP (filtered to valid keys).
    show : bool, default True
        If True, call plt.show().
    mds_load_path, tsne_load_path, umap_load_path : str or Path, optional
        If given and file exists, load precomputed embeddings from .npy.
    mds_save_path, tsne_save_path, umap_save_path : str or Path, optional
        If given, save computed embeddings as .npy.

    Returns
    -------
    fig : matplotlib.figure.Figure
    axes : tuple of Axes
    embeddings : dict
        {"MDS": E_mds, "t-SNE": E_tsne, "UMAP": E_umap}, each of shape
        (n + n_anchors, 2) with the anchors in the last rows.
    """
    X = np.asarray(X, dtype=np.float64)
    y = np.asarray(y).ravel()
    n = X.shape[0]
    X_all = np.vstack([X, _model_anchors(model)])
    n_all = X_all.shape[0]

    # --- MDS ---
    E_mds = None
    if mds_load_path is not None and Path(mds_load_path).exists():
        E_mds = _load_embedding_2d(mds_load_path, expected_n=n_all)
    if E_mds is None:
        E_mds = classical_mds_from_distance(cdist(X_all, X_all), n_components=2)
        if mds_save_path is not None:
            _save_embedding_2d(E_mds, mds_save_path)

    # --- t-SNE ---
    E_tsne = None
    if tsne_load_path is not None and Path(tsne_load_path).exists():
        E_tsne = _load_embedding_2d(tsne_load_path, expected_n=n_all)
    if E_tsne is None:
        tsp = dict(tsne_params or {})
        tsp.setdefault("n_components", 2)
        tsp.setdefault("perplexity", 30)
        tsp.setdefault("learning_rate", "auto")
        tsp.setdefault("random_state", random_state)
        tsp.setdefault("init", "pca")

        _check_tsne_perplexity(tsp["perplexity"], n_samples=n_all)
        tsp = _filter_kwargs(TSNE, tsp)
        E_tsne = TSNE(**tsp).fit_transform(X_all)
        if tsne_save_path is not None:
            _save_embedding_2d(E_tsne, tsne_save_path)

    # --- UMAP ---
    E_umap = None
    if umap_load_path is not None and Path(umap_load_path).exists():
        E_umap = _load_embedding_2d(umap_load_path, expected_n=n_all)
    if E_umap is None:
        ump = dict(umap_params or {})
        ump.setdefault("n_components", 2)
        ump.setdefault("n_neighbors", 15)
        ump.setdefault("min_dist", 0.15)
        ump.setdefault("random_state", random_state)
        ump = _filter_kwargs(UMAP, ump)
        E_umap = UMAP(**ump).fit_transform(X_all)
        if umap_save_path is not None:
            _save_embedding_2d(E_umap, umap_save_path)

    # --- Plot ---
    n_panels = 4 if X.shape[1] == 2 else 3
    fig, axes = plt.subplots(1, n_panels, figsize=figsize)
    _draw_panel(axes[0], E_mds, y, n, "MDS")
    _draw_panel(axes[1], E_tsne, y, n, "t-SNE")
    _draw_panel(axes[2], E_umap, y, n, "UMAP")
    if n_panels == 4:
        _draw_decision_panel(axes[3], X, y, model)
    plt.tight_layout()
    if show:
        plt.show()

    embeddings = {"MDS": E_mds, "t-SNE": E_tsne, "UMAP": E_umap}
    return fig, tuple(axes), embeddings
