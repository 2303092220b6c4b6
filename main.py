"""
Advection-Diffusion Solver - Unified entry point for solving and plotting.

Usage:
    uv run python main.py
    uv run python main.py stabilization=gls order=2
    uv run python main.py +experiment=boundary_layer
    uv run python main.py anasol=null
    uv run python main.py -m stabilization=none,supg,gls,ms
"""

import logging
import os
import sys
from pathlib import Path

import hydra
import mlflow
import pandas as pd
from dotenv import load_dotenv
from hydra.utils import instantiate
from omegaconf import DictConfig, OmegaConf

load_dotenv()
sys.path.insert(0, str(Path(__file__).parent / "src"))

log = logging.getLogger(__name__)


def get_experiment_name(cfg: DictConfig) -> str:
    """Build full experiment name with optional prefix."""
    name = cfg.experiment_name
    prefix = cfg.mlflow.get("project_prefix", "")
    if prefix and not name.startswith("/"):
        return f"{prefix}/{name}"
    return name


def setup_mlflow(cfg: DictConfig) -> str:
    """Setup MLflow tracking and return experiment name."""
    tracking_uri = cfg.mlflow.get("tracking_uri", "./mlruns")
    if str(cfg.mlflow.get("mode", "")).lower() in ("files", "local"):
        os.environ.pop("MLFLOW_TRACKING_URI", None)
    os.environ["MLFLOW_TRACKING_URI"] = str(tracking_uri)
    mlflow.set_tracking_uri(tracking_uri)

    experiment_name = get_experiment_name(cfg)
    mlflow.set_experiment(experiment_name)
    return experiment_name


def run_solver(cfg: DictConfig, level: int, output_dir: Path) -> dict:
    """Run the solver on one refinement level and log to MLflow. Returns the metrics."""
    make_solver = instantiate(cfg.solver, nx=level, ny=level, _partial_=True, _convert_="partial")
    anasol = instantiate(cfg.anasol) if cfg.get("anasol") else None
    solver = make_solver(anasol=anasol)
    params = solver.params
    run_name = f"{params.method}_{params.stabilization}_p{params.order}_N{level}"

    with mlflow.start_run(run_name=run_name, tags={"solver": params.method}):
        mlflow.log_params(params.to_mlflow())
        mlflow.log_dict(OmegaConf.to_container(cfg, resolve=True), "config.yaml")

        log.info(f"Solving: {run_name}")
        solver.solve()
        mlflow.log_metrics(solver.metrics.to_mlflow())

        h5_path = output_dir / f"{run_name}.h5"
        solver.save(h5_path)
        mlflow.log_artifact(str(h5_path))

        if solver.time_series is not None and cfg.get("plot"):
            from shared.plotting import plot_time_series

            plot_path = plot_time_series(solver.time_series.to_dataframe(), output_dir, f"{run_name}_time.pdf")
            if plot_path:
                mlflow.log_artifact(str(plot_path))

        m = solver.metrics
        log.info(f"Done: h={m.h:.3e}, |||e|||={m.energy_error:.3e}, effectivity={m.effectivity:.3f}, time={m.wall_time_seconds:.2f}s")
    return {"N": level, **solver.metrics.to_dataframe().iloc[0].to_dict()}


ERROR_COLUMNS = ["energy_error", "l2_error", "error_estimate"]


def available_error_columns(results: pd.DataFrame) -> list[str]:
    """Error columns with at least one value (NaN without an analytical solution)."""
    return [c for c in ERROR_COLUMNS if results[c].notna().any()]


def generate_plots(cfg: DictConfig, results: pd.DataFrame, output_dir: Path):
    """Plot the refinement study and upload it to MLflow."""
    from shared.plotting import plot_convergence_study

    error_cols = available_error_columns(results)
    plot_path = plot_convergence_study(
        results,
        error_cols,
        output_dir,
        params={"stab": cfg.stabilization, "p": cfg.order},
    )
    if plot_path:
        with mlflow.start_run(run_name=f"{cfg.experiment_name}_study"):
            mlflow.log_artifact(str(plot_path))
            mlflow.log_table(results, "convergence.json")


@hydra.main(config_path="conf", config_name="config", version_base=None)
def main(cfg: DictConfig) -> None:
    """Main entry point."""
    log.info(f"Stabilization: {cfg.stabilization}, order={cfg.order}, levels={list(cfg.levels)}")
    log.info(f"MLflow experiment: {setup_mlflow(cfg)}")

    output_dir = Path(hydra.core.hydra_config.HydraConfig.get().runtime.output_dir)
    results = pd.DataFrame([run_solver(cfg, level, output_dir) for level in cfg.levels])
    if len(results) > 1:
        from solvers import convergence_table

        results = convergence_table(results, available_error_columns(results))
        rates = {c: results[c].iloc[-1] for c in results.columns if c.endswith(" rate")}
        log.info(f"Observed rates on the finest level: {rates}")
    results.to_csv(output_dir / "convergence.csv", index=False)

    if cfg.get("plot") and len(results) > 1:
        generate_plots(cfg, results, output_dir)


if __name__ == "__main__":
    main()
