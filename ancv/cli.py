"""Command-line interface for the ancv detection and recognition service."""
from __future__ import annotations

import json
from dataclasses import replace
from pathlib import Path
from typing import Any, Optional

import typer

from ancv.config import Paths, get_data_dir_from_env, get_service_config_from_env
from ancv.core.exceptions import AncvError
from ancv.core.logger import setup_logging_from_env
from ancv.core.oracle import ConsoleLabelOracle
from ancv.core.requests import DetectRequest, RecognizeRequest
from ancv.pipelines.service import VisionService

app = typer.Typer(help="Object detection and face recognition over RPC, by OpenCV.")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at DEBUG level."),
) -> None:
    if verbose:
        setup_logging_from_env(debug=True)


def _print_result(result: dict[str, Any]) -> None:
    typer.echo(json.dumps(result, indent=2))


def _fail(e: AncvError) -> None:
    typer.echo(f"error ({e.kind}): {e}", err=True)
    raise typer.Exit(code=1)


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, help="Address to bind, default 0.0.0.0."),
    port: Optional[int] = typer.Option(None, help="Port to bind, default 8861."),
    data_dir: Optional[Path] = None,
    debug: bool = False,
) -> None:
    """Start the RPC server."""
    from ancv.web.app import run_server

    if debug:
        setup_logging_from_env(debug=True)
    if data_dir is None:
        data_dir = get_data_dir_from_env()
    config = get_service_config_from_env()
    if host is not None:
        config = replace(config, host=host)
    if port is not None:
        config = replace(config, port=port)

    typer.echo(f"Starting RPC server on {config.host}:{config.port}")
    typer.echo(f"Data directory: {data_dir}")
    run_server(data_dir=data_dir, config=config, debug=debug)


app.command("rpc", hidden=True)(serve)


@app.command()
def detect(
    input: Path = typer.Option(..., "--input", "-i", help="Input image."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output image."),
    model_dir: Optional[Path] = typer.Option(
        None, "--model-dir", "--coco-dir", help="SSD model directory."
    ),
    data_dir: Optional[Path] = None,
    remote: Optional[str] = typer.Option(
        None, help="host:port of a running server to call instead of running locally."
    ),
) -> None:
    """Detect objects in an image."""
    request = DetectRequest(input=input, output=output, model_dir=model_dir)
    try:
        if remote:
            from ancv.client import RPCClient

            with RPCClient(remote, api_key=get_service_config_from_env().api_key) as client:
                _print_result(client.detect(request))
            return

        service = VisionService(paths=Paths(data_dir=data_dir or get_data_dir_from_env()))
        _print_result(service.detect(request).to_dict())
    except AncvError as e:
        _fail(e)


app.command("det", hidden=True)(detect)


@app.command()
def recognize(
    input: Path = typer.Option(..., "--input", "-i", help="Input image."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output image."),
    storage: Optional[Path] = typer.Option(None, "--storage", "-s", help="Storage dir."),
    recognized: Optional[Path] = typer.Option(None, help="Recognizer file."),
    cascade_dir: Optional[Path] = typer.Option(
        None, "--cascade-dir", "--lbpcascades", help="Cascade directory."
    ),
    faces_dir: Optional[Path] = typer.Option(None, help="Directory for face crops."),
    ask: bool = typer.Option(
        False, "--ask", "-a", help="Ask for a label for unrecognized faces."
    ),
    data_dir: Optional[Path] = None,
    remote: Optional[str] = typer.Option(
        None, help="host:port of a running server to call instead of running locally."
    ),
) -> None:
    """Recognize faces in an image, training on labels when asked."""
    request = RecognizeRequest(
        input=input,
        output=output,
        storage=storage,
        recognized_file=recognized,
        cascade_dir=cascade_dir,
        faces_dir=faces_dir,
        interactive=ask,
    )
    oracle = ConsoleLabelOracle() if ask else None
    try:
        if remote:
            from ancv.client import RPCClient

            with RPCClient(
                remote, api_key=get_service_config_from_env().api_key, oracle=oracle
            ) as client:
                _print_result(client.recognize(request))
            return

        config = get_service_config_from_env()
        service = VisionService(
            paths=Paths(data_dir=data_dir or get_data_dir_from_env()),
            lock_timeout=config.lock_timeout,
        )
        _print_result(service.recognize(request, oracle=oracle).to_dict())
    except AncvError as e:
        _fail(e)


app.command("rec", hidden=True)(recognize)
