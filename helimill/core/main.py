"""
Main execution module for the helical milling pipeline.
Orchestrates PCA, model comparison, tuning, NSGA-II search and selection.
"""

import argparse
import numpy as np
import pandas as pd
from typing import Optional, Dict, Any, List

from ..core.config import (
    CODE_VERSION, FEATURES, RESPONSES, LATENT_RESPONSE, CCD_ALPHA, SEED, N_FOLDS,
    N_BOOTSTRAP, POP_SIZE, N_GENERATIONS, SIGNIFICANCE_LEVEL
)
from ..data.data_manager import DataManager
from ..data.excel_manager import ReportWriter
from ..ml.comparison import compare_methods
from ..ml.evaluation import CrossValidator, BootstrapEvaluator
from ..ml.ml_models import ModelSpec, FittedModel, default_specs
from ..ml.tuning import HyperparameterSearch, TunedSVRModels
from ..optimization.machining import material_removal_rate, sphere_constraint
from ..optimization.nsga2 import NSGA2Optimizer, NSGA2Result
from ..optimization.pareto_optimizer import ParetoOptimizer

OBJECTIVE_NAMES = ["roughness_score", "MRR"]
OBJECTIVE_SENSES = ["min", "max"]


class HelimillPipeline:
    """Runs the full modelling and optimization workflow on the CCD sample."""

    def __init__(self, seed: int = SEED, n_folds: int = N_FOLDS, n_bootstrap: int = N_BOOTSTRAP,
                 pop_size: int = POP_SIZE, n_generations: int = N_GENERATIONS,
                 dataset_path: Optional[str] = None, nested: bool = False):
        self.seed = seed
        self.n_folds = n_folds
        self.n_bootstrap = n_bootstrap
        self.pop_size = pop_size
        self.n_generations = n_generations
        self.nested = nested

        self.data_manager = DataManager(dataset_path)
        self.ml_models = TunedSVRModels(seed=seed)
        self.pareto_optimizer = ParetoOptimizer()
        self.tables: Dict[str, pd.DataFrame] = {}

    def prepare_data(self, data: Optional[pd.DataFrame] = None) -> pd.DataFrame:
        """Load (or validate) the sample and append the latent roughness score"""
        df = self.data_manager.load_dataset() if data is None else self.data_manager.validate_sample(data)
        df, pca_summary = self.data_manager.add_latent_score(df, RESPONSES, LATENT_RESPONSE)
        self.tables["pca_loadings"] = pca_summary.reset_index().rename(columns={"index": "item"})
        return df

    def compare_rsm(self, df: pd.DataFrame) -> pd.DataFrame:
        """Complete vs stepwise-reduced response surface on the same folds"""
        specs = default_specs(LATENT_RESPONSE, FEATURES)[:2]
        cv = CrossValidator(self.ml_models, k=self.n_folds, seed=self.seed)
        results = cv.evaluate(df, specs)
        comparison = compare_methods(results, "MSE", SIGNIFICANCE_LEVEL)

        self.tables["rsm_cv"] = results
        self.tables["rsm_cv_summary"] = cv.summarize(results)
        self.tables["rsm_cv_test"] = comparison["pairwise"]

        full_fit = self.ml_models.fit(specs[1], df)
        self.tables["rsm_reduced_coefficients"] = self.ml_models.coefficient_table(full_fit)
        return results

    def tune_svr(self, df: pd.DataFrame) -> ModelSpec:
        """Full-sample search for the reported grid; the compared SVR re-tunes inside every fit"""
        base = ModelSpec("SVR", "svr", list(FEATURES), LATENT_RESPONSE)
        search = HyperparameterSearch(self.ml_models, seed=self.seed)
        _, grid = search.search(df, base)
        self.tables["svr_tuning_grid"] = grid
        if self.nested:
            self.tables["svr_nested_cv"] = search.nested_cv(df, base, k_outer=self.n_folds)
        return ModelSpec("SVR", "svr", list(FEATURES), LATENT_RESPONSE, {"tune": True})

    def compare_all(self, df: pd.DataFrame, specs: List[ModelSpec]) -> pd.DataFrame:
        self.ml_models.history = []
        cv = CrossValidator(self.ml_models, k=self.n_folds, seed=self.seed)
        results = cv.evaluate(df, specs)
        comparison = compare_methods(results, "MSE", SIGNIFICANCE_LEVEL)

        self.tables["cv"] = results
        self.tables["cv_summary"] = cv.summarize(results)
        self.tables["cv_pooled"] = cv.pooled_metrics()
        tuned = pd.DataFrame(self.ml_models.history)
        if len(tuned):
            # configuration chosen inside each training fold
            self.tables["svr_fold_configs"] = tuned.assign(n_train=tuned["rows"].map(len)).drop(columns="rows")
        self.tables["cv_pairwise_tests"] = comparison["pairwise"]
        if comparison["omnibus"] is not None:
            self.tables["cv_omnibus_test"] = pd.DataFrame([comparison["omnibus"].as_dict()])
        return results

    def bootstrap(self, df: pd.DataFrame, specs: List[ModelSpec]) -> pd.DataFrame:
        evaluator = BootstrapEvaluator(self.ml_models, n_replicates=self.n_bootstrap, seed=self.seed)
        results, summary = evaluator.evaluate(df, specs)
        self.tables["bootstrap"] = results
        self.tables["bootstrap_summary"] = summary
        return summary

    def select_model(self, df: pd.DataFrame, specs: List[ModelSpec], summary: pd.DataFrame) -> FittedModel:
        """Final surrogate: lowest optimism-corrected RMSE, refit on the full sample"""
        rmse = summary[summary["metric"] == "RMSE"].set_index("method")["corrected_mean"]
        name = rmse.idxmin()
        spec = next(s for s in specs if s.name == name)
        print(f"[main] Selected surrogate '{name}' (corrected RMSE {rmse[name]:.4f})")
        return self.ml_models.fit(spec, df)

    def optimize(self, surrogate: FittedModel) -> NSGA2Result:
        """Minimize the surrogate roughness score and maximize MRR inside the CCD sphere"""
        def objectives(X: np.ndarray) -> np.ndarray:
            return np.column_stack([self.ml_models.predict_array(surrogate, X), -material_removal_rate(X)])

        bound = np.full(len(FEATURES), CCD_ALPHA)
        optimizer = NSGA2Optimizer(objectives, sphere_constraint, -bound, bound,
                                   pop_size=self.pop_size, n_generations=self.n_generations, seed=self.seed)
        return optimizer.run()

    def select_solutions(self, result: NSGA2Result) -> pd.DataFrame:
        front = result.front(FEATURES, OBJECTIVE_NAMES)
        selection = self.pareto_optimizer.selection_table(front, FEATURES, OBJECTIVE_NAMES, OBJECTIVE_SENSES)

        reported = front.copy()
        reported["MRR"] = -reported["MRR"]
        self.tables["pareto_front"] = reported
        self.tables["pareto_selection"] = selection
        print(f"[main] Pareto front has {len(front)} members")
        return selection

    def run(self, data: Optional[pd.DataFrame] = None, export: bool = True) -> Dict[str, Any]:
        print(f"[main] Starting helical milling pipeline {CODE_VERSION}")
        df = self.prepare_data(data)

        self.compare_rsm(df)
        specs = [s for s in default_specs(LATENT_RESPONSE, FEATURES) if s.family != "svr"]
        specs.append(self.tune_svr(df))
        self.compare_all(df, specs)
        summary = self.bootstrap(df, specs)

        surrogate = self.select_model(df, specs, summary)
        result = self.optimize(surrogate)
        selection = self.select_solutions(result)

        report_path = ReportWriter().write(self.tables) if export else None
        return {"status": "ok", "data": df, "surrogate": surrogate, "result": result,
                "selection": selection, "tables": self.tables, "report": report_path}


def main():
    """Main entry point with command-line argument support"""
    parser = argparse.ArgumentParser(description='Helical milling model comparison and optimization')
    parser.add_argument('--seed', type=int, default=SEED, help='Seed for all resampling and search')
    parser.add_argument('--folds', type=int, default=N_FOLDS, help='Number of cross-validation folds')
    parser.add_argument('--bootstrap', type=int, default=N_BOOTSTRAP, help='Number of bootstrap replicates')
    parser.add_argument('--population', type=int, default=POP_SIZE, help='NSGA-II population size')
    parser.add_argument('--generations', type=int, default=N_GENERATIONS, help='NSGA-II generation count')
    parser.add_argument('--dataset', default=None, help='Path to the CCD CSV (defaults to the packaged table)')
    parser.add_argument('--nested', action='store_true', help='Also run nested CV of the SVR search')
    parser.add_argument('--no-export', action='store_true', help='Skip writing the Excel/CSV report')

    args = parser.parse_args()

    pipeline = HelimillPipeline(seed=args.seed, n_folds=args.folds, n_bootstrap=args.bootstrap,
                                pop_size=args.population, n_generations=args.generations,
                                dataset_path=args.dataset, nested=args.nested)
    return pipeline.run(export=not args.no_export)


if __name__ == "__main__":
    main()
