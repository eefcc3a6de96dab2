# functions.py
# -*- coding: utf-8 -*-
"""
Utility functions for:
- stratified cross-validation of locally linear / clustered SVM classifiers,
- exhaustive grid search and Bayesian optimization of their hyperparameters.

Public API:
    stratified_kfold_full_metrics
    stratified_kfold_grid_search
    stratified_kfold_bayes_search
"""

from typing import Dict, List, Union, Any, Optional, Type
from pathlib import Path
import inspect
import pickle

import numpy as np
import pandas as pd
import optuna
from optuna.trial import TrialState

from sklearn.model_selection import StratifiedKFold, ParameterGrid
from sklearn.metrics import accuracy_score, balanced_accuracy_score, f1_score
from tqdm.auto import tqdm

__author__ = 'Lukas Bader, Dietlind Zühlke'
__copyright__ = 'Copyright 2026, Lukas Bader, Dietlind Zühlke'
__license__ = 'GPLv3'
__version__ = '1.0.0'
__maintainer__ = 'Lukas Bader'
__email__ = 'lukas.bader@pferd.com'


# =============================================================================
# Helpers
# =============================================================================


def _filter_kwargs(cls, kwargs: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Filter a kwargs dict so that only arguments supported by cls.__init__ remain."""
    if kwargs is None:
        return {}
    sig = inspect.signature(cls.__init__).parameters
    return {k: v for k, v in kwargs.items() if k in sig}


def _final_training_loss(model) -> Optional[float]:
    """
    Mean final training loss over the binary sub-problems of a model, or
    None if the model does not keep a training log.
    """
    if not hasattr(model, "get_training_log"):
        return None
    log = model.get_training_log()
    if log is None or "loss" not in log:
        return None
    return float(np.mean(log["loss"]))


def _fold_rows(folds: List[Dict[str, Any]], params: Dict[str, Any], scoring: str,
               extra: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
    """One table row per fold, holding metrics and hyperparameters."""
    rows = []
    for fold_idx, fold_metrics in enumerate(folds):
        row = dict(extra or {})
        row["fold_index"] = fold_idx
        row.update(fold_metrics)
        if scoring in fold_metrics:
            row[f"{scoring}_fold"] = fold_metrics[scoring]
        for p_name, p_val in params.items():
            row[p_name] = p_val
        rows.append(row)
    return rows


def _save_results(result_dict: Dict[str, Any], table_rows: List[Dict[str, Any]],
                  save_path, table_path, table_suffix: str, label: str, verbose: bool) -> None:
    if save_path is not None:
        p = Path(save_path)
        p.parent.mkdir(parents=True, exist_ok=True)
        with p.open("wb") as f:
            pickle.dump(result_dict, f)
        if verbose:
            print(f"{label} results saved to '{p}'.")

    if table_path is None and save_path is not None:
        p = Path(save_path)
        table_path = p.with_name(p.stem + table_suffix)

    if table_path is not None:
        table_path = Path(table_path)
        table_path.parent.mkdir(parents=True, exist_ok=True)
        df = pd.DataFrame(table_rows)
        with table_path.open("wb") as f:
            pickle.dump(df, f)
        if verbose:
            print(f"Fold table saved to '{table_path}' (pandas.DataFrame as pickle).")


def _print_best(label: str, params: Dict[str, Any], scoring: str, score: float,
                averages: Optional[Dict[str, float]]) -> None:
    print("\n" + "=" * 80)
    print(f"Best parameter combination ({label}):")
    print(params)
    print(f"\nBest {scoring}: {score:.4f}")
    if averages is not None:
        print("\nMetrics (mean over folds):")
        for k, v in averages.items():
            print(f"  {k}: {v:.4f}")
    print("=" * 80)


# =============================================================================
# Cross-validation and model selection (Grid Search / Bayesian Search)
# =============================================================================


def stratified_kfold_full_metrics(
    X,
    y,
    model_cls: Type,
    n_splits: int = 5,
    shuffle: bool = True,
    random_state: int = 42,
    model_params: Optional[Dict[str, Any]] = None,
    verbose: bool = True,
) -> Dict[str, Any]:
    """
    Stratified K-fold cross-validation for a classifier on a feature matrix.

    Parameters
    ----------
    X : array-like (n x d)
        Samples.
    y : array-like
        Class labels (binary or multi-class).
    model_cls : Type
        Model class (e.g. LocallyLinearSVC, ClusteredSVC).
    model_params : dict, optional
        Initialization parameters for model_cls. Unknown keys are dropped.

    Returns
    -------
    dict
        {
          "folds": [...],         # per-fold metrics
          "averages": {...},      # averaged metrics over folds
          "n_splits": int,
          "model_cls": model_cls,
          "model_params": dict,
        }
    """
    if model_params is None:
        model_params = {}

    model_params = _filter_kwargs(model_cls, model_params)

    X = np.asarray(X, dtype=float)
    y = np.asarray(y).ravel()
    n = len(y)
    if n == 0:
        raise ValueError("y must not be empty.")
    if X.shape[0] != n:
        raise ValueError(f"X has {X.shape[0]} rows but y has {n} labels.")

    skf = StratifiedKFold(n_splits=n_splits, shuffle=shuffle, random_state=random_state)

    fold_results = []
    for f, (tr_idx, va_idx) in enumerate(skf.split(X, y), start=1):
        clf = model_cls(**model_params)
        clf.fit(X[tr_idx], y[tr_idx])
        y_pred = clf.predict(X[va_idx])
        y_va = y[va_idx]

        res = {
            "fold": f,
            "train_total": len(tr_idx),
            "val_total": len(va_idx),
            "accuracy": accuracy_score(y_va, y_pred),
            "balanced_accuracy": balanced_accuracy_score(y_va, y_pred),
            "f1_macro": f1_score(y_va, y_pred, average="macro"),
            "train_accuracy": accuracy_score(y[tr_idx], clf.predict(X[tr_idx])),
        }

        train_loss = _final_training_loss(clf)
        if train_loss is not None:
            res["train_loss"] = train_loss

        fold_results.append(res)

        if verbose:
            print(
                f"[Fold {f}] acc={res['accuracy']:.4f} | "
                f"bal_acc={res['balanced_accuracy']:.4f} | f1_macro={res['f1_macro']:.4f}"
            )

    keys_to_avg = ["accuracy", "balanced_accuracy", "f1_macro", "train_accuracy"]
    if all("train_loss" in fr for fr in fold_results):
        keys_to_avg.append("train_loss")
    avg = {k: float(np.mean([fr[k] for fr in fold_results])) for k in keys_to_avg}

    return {
        "folds": fold_results,
        "averages": avg,
        "n_splits": n_splits,
        "model_cls": model_cls,
        "model_params": model_params,
    }


def _build_model_params_from_trial(
    trial: optuna.trial.Trial,
    model_cls: Type,
    param_grid: Dict[str, Any],
) -> Dict[str, Any]:
    """
    Construct model_params for model_cls from an Optuna trial and a param_grid:
      * list length 1 -> constant value,
      * list length >1 -> trial.suggest_categorical(...),
      * non-list       -> constant value.
    """
    params: Dict[str, Any] = {}
    for key, values in param_grid.items():
        if not isinstance(values, (list, tuple)):
            params[key] = values
            continue

        values_list = list(values)
        if len(values_list) == 1:
            params[key] = values_list[0]
        else:
            params[key] = trial.suggest_categorical(key, values_list)

    return _filter_kwargs(model_cls, params)


def stratified_kfold_grid_search(
    X,
    y,
    model_cls: Type,
    param_grid: Dict[str, Any],
    n_splits: int = 5,
    shuffle: bool = True,
    random_state: int = 42,
    verbose: bool = True,
    scoring: str = "balanced_accuracy",
    save_path: Optional[Union[str, Path]] = None,
    table_path: Optional[Union[str, Path]] = None,
) -> Dict[str, Any]:
    """
    Exhaustive grid search over param_grid using stratified K-fold
    cross-validation.

    Results can be saved as:
      - `save_path` : pickle containing all results and the best configuration.
      - `table_path`: pickle of a pandas DataFrame with one row per fold
                      and parameter combination.

    Returns
    -------
    dict
        {
          "all_results": [...],
          "best_result": {...},
          "best_score": float,
          "scoring": str,
          "model_cls": model_cls,
          "n_splits": int,
          "param_grid": dict,
        }
    """
    y = np.asarray(y).ravel()
    if y.size == 0:
        raise ValueError("y must not be empty.")

    param_list = list(ParameterGrid(dict(param_grid)))
    if len(param_list) == 0:
        raise ValueError("param_grid produced no combinations.")

    all_results: List[Dict[str, Any]] = []
    best_score = -np.inf
    best_result: Optional[Dict[str, Any]] = None
    table_rows: List[Dict[str, Any]] = []

    for params in tqdm(param_list, desc="Grid-Search", disable=not verbose):
        params_filtered = _filter_kwargs(model_cls, params)

        cv_res = stratified_kfold_full_metrics(
            X=X,
            y=y,
            model_cls=model_cls,
            n_splits=n_splits,
            shuffle=shuffle,
            random_state=random_state,
            model_params=params_filtered,
            verbose=False,
        )
        if scoring not in cv_res["averages"]:
            raise ValueError(f"Unknown scoring '{scoring}'; choose from {list(cv_res['averages'])}.")
        score = cv_res["averages"][scoring]

        result_entry = {
            "params": params_filtered,
            "cv_result": cv_res,
            "score": score,
        }
        all_results.append(result_entry)

        if score > best_score:
            best_score = score
            best_result = result_entry

        table_rows.extend(_fold_rows(cv_res["folds"], params_filtered, scoring))

    result_dict = {
        "all_results": all_results,
        "best_result": best_result,
        "best_score": best_score,
        "scoring": scoring,
        "model_cls": model_cls,
        "n_splits": n_splits,
        "param_grid": dict(param_grid),
    }

    if verbose and best_result is not None:
        _print_best("Grid Search", best_result["params"], scoring, best_score,
                    best_result["cv_result"]["averages"])

    _save_results(result_dict, table_rows, save_path, table_path,
                  "_all_folds.pkl", "Grid search", verbose)

    return result_dict


def stratified_kfold_bayes_search(
    X,
    y,
    model_cls: Type,
    param_grid: Dict[str, Any],
    n_splits: int = 5,
    shuffle: bool = True,
    random_state: int = 42,
    verbose: bool = True,
    scoring: str = "balanced_accuracy",
    n_trials: int = 50,
    save_path: Optional[Union[str, Path]] = None,
    study_name: Optional[str] = None,
    sampler: Optional[optuna.samplers.BaseSampler] = None,
    pruner: Optional[optuna.pruners.BasePruner] = None,
    table_path: Optional[Union[str, Path]] = None,
) -> Dict[str, Any]:
    """
    Bayesian optimization (Optuna) over a param_grid search space using
    stratified_kfold_full_metrics as objective.

    For each trial + fold, one row is added to a DataFrame (optional output),
    including metrics and hyperparameters.

    Returns
    -------
    dict
        {
          "all_results": [...],
          "best_result": {...},
          "best_score": float,
          "scoring": str,
          "model_cls": model_cls,
          "n_splits": int,
          "param_grid": dict,
          "study_best_trial_number": int,
        }
    """
    y = np.asarray(y).ravel()
    if y.size == 0:
        raise ValueError("y must not be empty.")

    def objective(trial: optuna.trial.Trial) -> float:
        model_params = _build_model_params_from_trial(
            trial=trial,
            model_cls=model_cls,
            param_grid=param_grid,
        )

        cv_res = stratified_kfold_full_metrics(
            X=X,
            y=y,
            model_cls=model_cls,
            n_splits=n_splits,
            shuffle=shuffle,
            random_state=random_state,
            model_params=model_params,
            verbose=False,
        )

        score = cv_res["averages"][scoring]
        trial.set_user_attr("cv_result", cv_res)
        trial.set_user_attr("model_params", model_params)

        if verbose:
            print(f"[Trial {trial.number}] {scoring}={score:.4f}")

        return score

    study = optuna.create_study(
        direction="maximize",
        study_name=study_name,
        sampler=sampler,
        pruner=pruner,
    )

    if verbose:
        print(f"Starting Bayesian optimization with {n_trials} trials ...")

    study.optimize(objective, n_trials=n_trials)

    all_results = []
    best_result = None
    best_score = -np.inf
    table_rows: List[Dict[str, Any]] = []

    for tr in study.trials:
        if tr.state != TrialState.COMPLETE:
            continue

        model_params = tr.user_attrs.get("model_params", {})
        cv_res = tr.user_attrs.get("cv_result", None)
        score = tr.value

        entry = {
            "trial_number": tr.number,
            "params": model_params,
            "cv_result": cv_res,
            "score": score,
        }
        all_results.append(entry)

        if score > best_score:
            best_score = score
            best_result = entry

        if cv_res is not None:
            table_rows.extend(_fold_rows(cv_res["folds"], model_params, scoring,
                                         extra={"trial_number": tr.number}))

    result_dict = {
        "all_results": all_results,
        "best_result": best_result,
        "best_score": best_score,
        "scoring": scoring,
        "model_cls": model_cls,
        "n_splits": n_splits,
        "param_grid": param_grid,
        "study_best_trial_number": study.best_trial.number,
    }

    if verbose and best_result is not None:
        averages = best_result["cv_result"]["averages"] if best_result["cv_result"] is not None else None
        _print_best("Bayesian Optimization", best_result["params"], scoring, best_score, averages)

    _save_results(result_dict, table_rows, save_path, table_path,
                  "_all_trials.pkl", "Bayes search", verbose)

    return result_dict
