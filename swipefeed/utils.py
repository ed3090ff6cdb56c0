import functools
import inspect

from loguru import logger


def _bound_params(func, args, kwargs) -> dict:
    sig = inspect.signature(func)
    bound_args = sig.bind(*args, **kwargs)
    bound_args.apply_defaults()
    return dict(bound_args.arguments)


def safe_func_wrapper(func):
    """
    A decorator that logs function entry, exit, and exceptions.

    Features:
    - Prints function name and parameters before execution
    - Catches exceptions, prints error info, and re-raises
    - Prints success message after successful execution
    - Preserves function metadata and return values
    - Works on both plain and ``async def`` functions
    """

    if inspect.iscoroutinefunction(func):

        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs):
            func_name = func.__name__
            logger.info(
                f"Entering {func_name} with params: {_bound_params(func, args, kwargs)}"
            )
            try:
                result = await func(*args, **kwargs)
                logger.info(f"{func_name} succeeded. Exiting..")
                return result
            except Exception as e:
                logger.error(f"{func_name} failed: {type(e).__name__}: {e}")
                raise RuntimeError(f"Exception: {type(e).__name__}: {e}") from e

        return async_wrapper

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        func_name = func.__name__
        logger.info(
            f"Entering {func_name} with params: {_bound_params(func, args, kwargs)}"
        )
        try:
            result = func(*args, **kwargs)
            logger.info(f"{func_name} succeeded. Exiting..")
            return result
        except Exception as e:
            logger.error(f"{func_name} failed: {type(e).__name__}: {e}")
            raise RuntimeError(f"Exception: {type(e).__name__}: {e}") from e

    return wrapper
