import functools
import json
import sys
from enum import Enum

import typer
import yaml

from aks_set_context import actions
from aks_set_context.errors import SetContextError


class TyperOutputFormat(str, Enum):
    yaml = "yaml"
    json = "json"
    raw = "raw"


def default_print_retval(ret: dict | list | str | None, output_format: TyperOutputFormat, **kwargs):
    if ret is None:
        return

    if output_format == TyperOutputFormat.yaml:
        print(yaml.dump(ret, default_flow_style=False))
    elif output_format == TyperOutputFormat.json:
        print(json.dumps(ret, indent=2))
    elif output_format == TyperOutputFormat.raw:
        sys.stdout.write(ret if isinstance(ret, str) else json.dumps(ret))


def report_failure(fn):
    """
    Report any failure through the runner's error channel and exit with status 1.

    Errors other than SetContextError are unexpected, their type is kept in the message.
    """

    @functools.wraps(fn)
    def wrapper(*args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except SetContextError as e:
            actions.set_failed(str(e))
            raise typer.Exit(code=1)
        except Exception as e:
            actions.set_failed(f"{type(e).__name__}: {e}")
            raise typer.Exit(code=1)

    return wrapper


def get_app(default_output_format: TyperOutputFormat = TyperOutputFormat.yaml, callback_fn=None, print_retval_fn=None):
    if print_retval_fn is None:
        print_retval_fn = default_print_retval

    app = typer.Typer(result_callback=print_retval_fn)

    if callback_fn is None:
        @app.callback()
        def default_callback(output_format: TyperOutputFormat = default_output_format):
            pass
    else:
        app.callback()(callback_fn)

    return app
