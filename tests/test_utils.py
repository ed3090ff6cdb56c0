import pytest

from swipefeed.utils import safe_func_wrapper


@safe_func_wrapper
def add(a, b=2):
    return a + b


@safe_func_wrapper
async def async_add(a, b=2):
    return a + b


@safe_func_wrapper
async def async_fail():
    raise ValueError("bad input")


def test_sync_passthrough():
    assert add(1) == 3
    assert add.__name__ == "add"


@pytest.mark.asyncio
async def test_async_passthrough():
    assert await async_add(1, b=5) == 6
    assert async_add.__name__ == "async_add"


@pytest.mark.asyncio
async def test_async_errors_reraised():
    with pytest.raises(RuntimeError, match="ValueError: bad input"):
        await async_fail()
