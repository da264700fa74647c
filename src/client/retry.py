from typing import Awaitable, Callable, Optional, TypeVar

R = TypeVar("R")


async def attempt(
    send: Callable[[], Awaitable[R]],
    should_retry: Callable[[R], bool],
    before_retry: Optional[Callable[[R], Awaitable[None]]] = None,
    max_retries: int = 1,
) -> R:
    """
    Call ``send`` and repeat it at most ``max_retries`` times while
    ``should_retry`` accepts the last result.

    ``before_retry`` runs between attempts with the rejected result. Once the
    bound is reached the last result is returned as-is.
    """
    result = await send()
    retries = 0
    while retries < max_retries and should_retry(result):
        retries += 1
        if before_retry is not None:
            await before_retry(result)
        result = await send()
    return result
