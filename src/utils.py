import contextvars
import logging
from contextlib import contextmanager
from typing import Any, Callable, Dict

import rpy2.robjects as ro
from rpy2.robjects import pandas2ri
from rpy2.robjects.conversion import localconverter

logger = logging.getLogger(__name__)


@contextmanager
def context_wrapper():
    ctx = contextvars.copy_context()
    yield lambda func, *args, **kwargs: ctx.run(func, *args, **kwargs)


def run_func_dict(kwargs: Dict[str, Any], func: Callable) -> Any:
    """
    Run a workflow function with the pandas converter of rpy2 active.

    Any error is logged, with its traceback, and raised again so that a failed
    workflow stops the run script.

    Args:
        kwargs: Keyword arguments of func.
        func: Workflow function.

    Returns:
        Whatever func returns.
    """
    logger.info(f"Starting execution of {func.__name__}.")
    try:
        with localconverter(ro.default_converter + pandas2ri.converter):
            with context_wrapper() as run_in_context:
                result = run_in_context(func, **kwargs)
    except Exception as e:
        logger.exception(f"Error occurred while executing {func.__name__}: {e}")
        raise

    logger.info(f"Successfully executed {func.__name__}.")
    return result
