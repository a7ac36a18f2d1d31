import importlib
import sys
from typing import List, Optional, Sequence

import typer

from ..dsl.controller import Controller
from ..dsl.schema import HadoopEnv, RerunStrategy, load_env, normalize_json
from ..log import configure_logging
from ..runtime.backends.hadoop import HadoopEngine, HdfsFileSystem, worker_command
from ..runtime.dispatch import PhaseDispatcher, dispatch
from ..runtime.local import LocalEngine, LocalFileSystem
from ..runtime.orchestrate import orchestrate
from ..runtime.state import phase_names
from ..sdk.base import Engine, FileSystem


def _load(path: str):
    mod_name, attr = path.rsplit(":", 1) if ":" in path else path.rsplit(".", 1)
    mod = importlib.import_module(mod_name)
    return getattr(mod, attr)


def _load_controller(target: str) -> Controller:
    ctl = _load(target)
    if not isinstance(ctl, Controller):
        raise typer.BadParameter(f"{target} is not a Controller")
    return ctl


def _run_flow(
    ctl: Controller,
    env: HadoopEnv,
    rerun: RerunStrategy,
    local: bool,
    worker: List[str],
    files: Sequence[str],
    fs: Optional[FileSystem] = None,
    engine: Optional[Engine] = None,
) -> None:
    if fs is None:
        fs = LocalFileSystem() if local else HdfsFileSystem(env)
    if engine is None:
        engine = LocalEngine(ctl, fs) if local else HadoopEngine(env, worker, files)
    ctx = orchestrate(ctl, env, fs, engine, rerun)
    if not ctx.ok:
        typer.echo(str(ctx.error), err=True)
        raise typer.Exit(code=1)
    typer.echo("Success.")


def build_app(
    ctl: Controller,
    env: Optional[HadoopEnv] = None,
    rerun: RerunStrategy = RerunStrategy.FAIL,
    fs: Optional[FileSystem] = None,
    engine: Optional[Engine] = None,
    script: Optional[str] = None,
) -> typer.Typer:
    app = typer.Typer(add_completion=False, help=f"Job flow {ctl.name}")

    @app.command()
    def main(
        phase: Optional[str] = typer.Argument(None, help="map_<k> or reduce_<k>; omit to orchestrate the flow"),
        rerun_: RerunStrategy = typer.Option(rerun, "--rerun", help="What to do when a destination exists"),
        config: Optional[str] = typer.Option(None, "--config", help="YAML file with Hadoop settings"),
        local: bool = typer.Option(False, "--local", help="Run every step in this process"),
        log_level: str = typer.Option("INFO", "--log-level"),
    ):
        hadoop_env = load_env(config, base=env)
        if phase is not None:
            dispatch(ctl, phase, fs or HdfsFileSystem(hadoop_env))
            return
        configure_logging(log_level)
        script_path = script or sys.argv[0]
        _run_flow(
            ctl, hadoop_env, rerun_, local,
            worker=worker_command(hadoop_env, script_path),
            files=[script_path],
            fs=fs, engine=engine,
        )

    return app


def hadoop_main(
    ctl: Controller,
    env: Optional[HadoopEnv] = None,
    rerun: RerunStrategy = RerunStrategy.FAIL,
    fs: Optional[FileSystem] = None,
    engine: Optional[Engine] = None,
) -> None:
    """Entry point for a job flow script.

    Without arguments the script orchestrates the whole flow; with a single
    phase argument it acts as that step's mapper or reducer.
    """
    build_app(ctl, env, rerun, fs, engine)()


app = typer.Typer(help="mrstream CLI")


@app.command()
def steps(target: str):
    """List the map/reduce phases of a job flow.

    The flow is replayed to count its steps, so every io action in it runs.
    """
    ctl = _load_controller(target)
    ctx = PhaseDispatcher("").run(ctl)
    listing = [dict(zip(("step", "map", "reduce"), (k, *phase_names(k)))) for k in range(ctx.counter.count)]
    print(normalize_json({"controller": ctl.name, "steps": listing}).decode())


@app.command()
def run(
    target: str,
    rerun: RerunStrategy = RerunStrategy.FAIL,
    config: Optional[str] = None,
    local: bool = False,
    log_level: str = "INFO",
):
    ctl = _load_controller(target)
    env = load_env(config)
    configure_logging(log_level)
    worker = [env.python_bin, "-m", "mrstream.cli.main", "phase", target]
    _run_flow(ctl, env, rerun, local, worker=worker, files=[])


@app.command()
def phase(target: str, token: str, config: Optional[str] = None):
    ctl = _load_controller(target)
    env = load_env(config)
    dispatch(ctl, token, HdfsFileSystem(env))


if __name__ == "__main__":
    app()
